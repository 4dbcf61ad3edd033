# content_scheduler/errors.py
"""Domain errors raised by the scheduling services.

Routers translate these into HTTP responses; inside a pass they are caught per
schedule or per record and reported in the pass result.
"""


class SchedulerError(Exception):
    """Base class for scheduling errors."""


class UnknownContentTypeError(SchedulerError):
    def __init__(self, value):
        self.value = value
        super().__init__(f"unknown content type: {value!r}")


class UnsupportedContentTypeError(SchedulerError):
    def __init__(self, content_type: str):
        self.content_type = content_type
        super().__init__(f"content type {content_type!r} is not supported by the scheduled dispatch pathway")


class ScheduleConfigError(SchedulerError):
    """A schedule is missing settings it needs for this run."""


class ScheduleNotFoundError(SchedulerError):
    def __init__(self, schedule_id):
        self.schedule_id = schedule_id
        super().__init__(f"schedule not found: {schedule_id}")

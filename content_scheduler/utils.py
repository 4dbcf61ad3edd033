# content_scheduler/utils.py
from datetime import datetime, timezone


def utcnow() -> datetime:
    # naive UTC; the store keeps timestamps without tzinfo
    return datetime.now(timezone.utc).replace(tzinfo=None)


def epoch_millis(moment: datetime) -> int:
    return int(moment.replace(tzinfo=timezone.utc).timestamp() * 1000)

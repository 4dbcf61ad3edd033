# content_scheduler/routers/schedule_router.py
from typing import List, Optional
import uuid

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlmodel.ext.asyncio.session import AsyncSession

from content_scheduler.dependencies.auth import require_trigger_token
from content_scheduler.dependencies.db import get_session_dep
from content_scheduler.errors import ScheduleNotFoundError
from content_scheduler.schemas.schedule_schema import ContentRead, ScheduleCreate, ScheduleRead
from content_scheduler.services.schedule_service import ScheduleService

router = APIRouter(prefix="/schedules", tags=["schedules"], dependencies=[Depends(require_trigger_token)])


@router.post("/", response_model=ScheduleRead, status_code=201)
async def create_schedule(payload: ScheduleCreate, session: AsyncSession = Depends(get_session_dep)):
    svc = ScheduleService(session)
    try:
        return await svc.create_schedule(payload)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


@router.get("/", response_model=List[ScheduleRead])
async def list_schedules(
    user_id: Optional[uuid.UUID] = None,
    task_id: Optional[uuid.UUID] = None,
    session: AsyncSession = Depends(get_session_dep),
):
    return await ScheduleService(session).list_schedules(user_id=user_id, task_id=task_id)


@router.get("/{schedule_id}", response_model=ScheduleRead)
async def get_schedule(schedule_id: uuid.UUID, session: AsyncSession = Depends(get_session_dep)):
    try:
        return await ScheduleService(session).get_schedule(schedule_id)
    except ScheduleNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.post("/{schedule_id}/pause", response_model=ScheduleRead)
async def pause_schedule(schedule_id: uuid.UUID, session: AsyncSession = Depends(get_session_dep)):
    try:
        return await ScheduleService(session).pause_schedule(schedule_id)
    except ScheduleNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.post("/{schedule_id}/resume", response_model=ScheduleRead)
async def resume_schedule(schedule_id: uuid.UUID, session: AsyncSession = Depends(get_session_dep)):
    try:
        return await ScheduleService(session).resume_schedule(schedule_id)
    except ScheduleNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.delete("/{schedule_id}", status_code=204)
async def delete_schedule(schedule_id: uuid.UUID, session: AsyncSession = Depends(get_session_dep)):
    try:
        await ScheduleService(session).delete_schedule(schedule_id)
    except ScheduleNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return Response(status_code=204)


@router.get("/{schedule_id}/content", response_model=List[ContentRead])
async def list_schedule_content(schedule_id: uuid.UUID, session: AsyncSession = Depends(get_session_dep)):
    try:
        return await ScheduleService(session).list_content(schedule_id)
    except ScheduleNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))

"""Pushup log endpoints."""

from datetime import date

from fastapi import APIRouter, HTTPException, Request
from starlette import status

from core.auth import UserId
from core.config import get_settings
from core.database import DbSession
from core.errors import InvalidLogError, LogNotFoundError
from core.ratelimit import WRITE_LIMIT, limiter
from routes.dependencies import Bus
from schemas import LogCreateRequest, LogListResponse, LogResponse, LogsDeletedResponse
from services.log_entry import LogEntry
from services.logs_service import (
    add_log,
    clear_logs,
    delete_log,
    delete_logs_for_day,
    list_logs,
)

router = APIRouter(prefix="/api/logs", tags=["logs"])


def _to_response(entry: LogEntry) -> LogResponse:
    return LogResponse(
        id=entry.id,
        count=entry.count,
        timestamp=entry.timestamp if not isinstance(entry.timestamp, str) else None,
    )


@router.get("", response_model=LogListResponse)
async def get_logs(user_id: UserId, db: DbSession) -> LogListResponse:
    """All of the caller's logs, oldest first."""
    logs = await list_logs(db, user_id)
    return LogListResponse(
        logs=[_to_response(entry) for entry in logs],
        total=sum(entry.count for entry in logs),
    )


@router.post(
    "",
    response_model=LogResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"description": "Invalid count"}},
)
@limiter.limit(WRITE_LIMIT)
async def create_log(
    request: Request,
    body: LogCreateRequest,
    user_id: UserId,
    db: DbSession,
    bus: Bus,
) -> LogResponse:
    try:
        entry = await add_log(
            db,
            user_id,
            body.count,
            body.on_date,
            tz=get_settings().tzinfo,
            bus=bus,
        )
    except InvalidLogError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return _to_response(entry)


@router.delete(
    "/day/{day}",
    response_model=LogsDeletedResponse,
)
@limiter.limit(WRITE_LIMIT)
async def delete_day(
    request: Request,
    day: date,
    user_id: UserId,
    db: DbSession,
    bus: Bus,
) -> LogsDeletedResponse:
    """Delete every log on one local calendar day."""
    deleted = await delete_logs_for_day(
        db, user_id, day, tz=get_settings().tzinfo, bus=bus
    )
    return LogsDeletedResponse(deleted=deleted)


@router.delete(
    "/{log_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"description": "Log not found"}},
)
@limiter.limit(WRITE_LIMIT)
async def remove_log(
    request: Request,
    log_id: int,
    user_id: UserId,
    db: DbSession,
    bus: Bus,
) -> None:
    try:
        await delete_log(db, user_id, log_id, bus=bus)
    except LogNotFoundError as e:
        raise HTTPException(status_code=404, detail="Log not found") from e


@router.delete("", response_model=LogsDeletedResponse)
@limiter.limit(WRITE_LIMIT)
async def remove_all_logs(
    request: Request,
    user_id: UserId,
    db: DbSession,
    bus: Bus,
) -> LogsDeletedResponse:
    deleted = await clear_logs(db, user_id, bus=bus)
    return LogsDeletedResponse(deleted=deleted)

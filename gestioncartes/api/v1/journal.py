"""Journal endpoints: listing, statistics, undo and import cancellation."""

from __future__ import annotations

from datetime import date, datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gestioncartes.api.responses import StandardResponse, success
from gestioncartes.db.session import get_db, get_session_factory
from gestioncartes.middleware.context import RequestContext, require_journal_admin
from gestioncartes.repositories.journal_repo import JournalFilters
from gestioncartes.services.import_batches import ImportBatchLedger
from gestioncartes.services.journal import JournalService
from gestioncartes.services.journal_recorder import ActionRecorder
from gestioncartes.services.undo import UndoEngine

router = APIRouter(prefix="/journal", tags=["journal"])

CANCEL_WARNING = (
    "Cancelling an import deletes its cards without per-card journal entries; "
    "it cannot be undone."
)


class JournalEntryItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str | None
    user_name: str
    full_name: str
    role: str
    agency: str | None
    timestamp: datetime
    action_type: str
    action: str | None
    target_table: str | None
    target_id: str | None
    old_value: str | None
    new_value: str | None
    import_batch_id: str | None
    ip_address: str | None
    details: str | None
    undone_entry_id: UUID | None


class PaginationInfo(BaseModel):
    page: int
    page_size: int
    total: int
    total_pages: int


class JournalListResponse(BaseModel):
    request_id: str
    entries: list[JournalEntryItem]
    pagination: PaginationInfo


class ImportBatchItem(BaseModel):
    batch_id: str
    item_count: int
    started_at: datetime
    user_name: str
    full_name: str
    agency: str | None


class ImportBatchListResponse(BaseModel):
    request_id: str
    batches: list[ImportBatchItem]


class CancelImportResponse(BaseModel):
    request_id: str
    batch_id: str
    deleted_count: int
    irreversible: bool = True
    warning: str = CANCEL_WARNING


class ActivityStatItem(BaseModel):
    action_type: str
    count: int
    last_occurred: datetime


class ActivityStatsResponse(BaseModel):
    request_id: str
    window_days: int
    stats: list[ActivityStatItem]


class UndoResponse(BaseModel):
    request_id: str
    success: bool
    message: str
    undo_entry_id: str
    undone_entry_id: str
    action_type: str
    target_table: str
    target_id: str | None


class PurgeResponse(BaseModel):
    request_id: str
    deleted_count: int
    retention_days: int


def _recorder(
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> ActionRecorder:
    return ActionRecorder(session_factory)


@router.get("", response_model=StandardResponse[JournalListResponse])
async def list_journal(
    ctx: Annotated[RequestContext, Depends(require_journal_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    date_from: date | None = None,
    date_to: date | None = None,
    user: str | None = None,
    action_type: str | None = None,
    table_name: str | None = None,
    page: int = Query(default=1, ge=1),
    page_size: int | None = Query(default=None, ge=1),
) -> StandardResponse[JournalListResponse]:
    """List journal entries, most recent first."""
    service = JournalService(db)
    result = await service.list_journal(
        JournalFilters(
            date_from=date_from,
            date_to=date_to,
            user=user,
            action_type=action_type,
            target_table=table_name,
        ),
        page=page,
        page_size=page_size,
    )
    return success(
        JournalListResponse(
            request_id=ctx.request_id,
            entries=[JournalEntryItem.model_validate(entry) for entry in result.entries],
            pagination=PaginationInfo(
                page=result.pagination.page,
                page_size=result.pagination.page_size,
                total=result.pagination.total,
                total_pages=result.pagination.total_pages,
            ),
        ),
        request_id=ctx.request_id,
    )


@router.get("/imports", response_model=StandardResponse[ImportBatchListResponse])
async def list_import_batches(
    ctx: Annotated[RequestContext, Depends(require_journal_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> StandardResponse[ImportBatchListResponse]:
    batches = await ImportBatchLedger(db).list_batches()
    return success(
        ImportBatchListResponse(
            request_id=ctx.request_id,
            batches=[
                ImportBatchItem(
                    batch_id=batch.batch_id,
                    item_count=batch.item_count,
                    started_at=batch.started_at,
                    user_name=batch.user_name,
                    full_name=batch.full_name,
                    agency=batch.agency,
                )
                for batch in batches
            ],
        ),
        request_id=ctx.request_id,
    )


@router.post("/imports/{batch_id}/cancel", response_model=StandardResponse[CancelImportResponse])
async def cancel_import_batch(
    batch_id: str,
    ctx: Annotated[RequestContext, Depends(require_journal_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    recorder: Annotated[ActionRecorder, Depends(_recorder)],
) -> StandardResponse[CancelImportResponse]:
    """
    Delete every card of an import batch.

    Irreversible: the deleted cards are not journaled individually, so
    clients must confirm with the operator before calling this.
    """
    result = await ImportBatchLedger(db, recorder).cancel_batch(
        batch_id,
        ctx.actor,
        ip_address=ctx.ip_address,
    )
    return success(
        CancelImportResponse(
            request_id=ctx.request_id,
            batch_id=result.batch_id,
            deleted_count=result.deleted_count,
        ),
        request_id=ctx.request_id,
    )


@router.get("/stats", response_model=StandardResponse[ActivityStatsResponse])
async def activity_stats(
    ctx: Annotated[RequestContext, Depends(require_journal_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    window_days: int | None = Query(default=None, ge=1, le=3650),
) -> StandardResponse[ActivityStatsResponse]:
    service = JournalService(db)
    days = window_days or service.settings.journal_stats_window_days
    stats = await service.activity_stats(days)
    return success(
        ActivityStatsResponse(
            request_id=ctx.request_id,
            window_days=days,
            stats=[
                ActivityStatItem(
                    action_type=stat.action_type,
                    count=stat.count,
                    last_occurred=stat.last_occurred,
                )
                for stat in stats
            ],
        ),
        request_id=ctx.request_id,
    )


@router.post("/undo/{entry_id}", response_model=StandardResponse[UndoResponse])
async def undo_entry(
    entry_id: str,
    ctx: Annotated[RequestContext, Depends(require_journal_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    recorder: Annotated[ActionRecorder, Depends(_recorder)],
) -> StandardResponse[UndoResponse]:
    """Apply the compensating action of a journaled CREATE, UPDATE or DELETE."""
    outcome = await UndoEngine(db, recorder).undo(entry_id, ctx.actor, ip_address=ctx.ip_address)
    return success(
        UndoResponse(
            request_id=ctx.request_id,
            success=outcome.success,
            message=outcome.message,
            undo_entry_id=str(outcome.undo_entry_id),
            undone_entry_id=str(outcome.undone_entry_id),
            action_type=outcome.action_type,
            target_table=outcome.target_table,
            target_id=outcome.target_id,
        ),
        request_id=ctx.request_id,
    )


@router.delete("/purge", response_model=StandardResponse[PurgeResponse])
async def purge_journal(
    ctx: Annotated[RequestContext, Depends(require_journal_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    recorder: Annotated[ActionRecorder, Depends(_recorder)],
    retention_days: int | None = Query(default=None, ge=1),
) -> StandardResponse[PurgeResponse]:
    service = JournalService(db, recorder)
    days = retention_days or service.settings.journal_retention_days
    deleted = await service.purge(ctx.actor, retention_days=days)
    return success(
        PurgeResponse(request_id=ctx.request_id, deleted_count=deleted, retention_days=days),
        request_id=ctx.request_id,
    )

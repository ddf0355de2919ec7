"""Journal queries: listing, activity statistics and retention."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import timedelta

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from gestioncartes.config import Settings, get_settings
from gestioncartes.db.base import utcnow
from gestioncartes.db.errors import translate_store_errors
from gestioncartes.error_codes import INVALID_DATE_RANGE
from gestioncartes.exceptions import ValidationError
from gestioncartes.models import ActionType, JournalEntry
from gestioncartes.repositories import journal_repo
from gestioncartes.repositories.journal_repo import ActivityStat, JournalFilters
from gestioncartes.services.actor import Actor
from gestioncartes.services.journal_recorder import ActionRecorder
from gestioncartes.services.legacy_journal import canonical_action_type, canonical_table_name


@dataclass
class Pagination:
    page: int
    page_size: int
    total: int
    total_pages: int


@dataclass
class JournalPage:
    entries: list[JournalEntry]
    pagination: Pagination


class JournalService:
    """Read side of the journal, plus the age-based purge."""

    def __init__(
        self,
        db: AsyncSession,
        recorder: ActionRecorder | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.db = db
        self.recorder = recorder or ActionRecorder()
        self.settings = settings or get_settings()

    def _normalize(self, filters: JournalFilters) -> JournalFilters:
        if filters.date_from and filters.date_to and filters.date_from > filters.date_to:
            raise ValidationError(
                "date_from must not be after date_to",
                details={"code": INVALID_DATE_RANGE},
            )
        user = filters.user.strip() if filters.user else None
        return replace(
            filters,
            user=user or None,
            action_type=canonical_action_type(filters.action_type) if filters.action_type else None,
            target_table=canonical_table_name(filters.target_table) or None,
        )

    async def list_journal(
        self,
        filters: JournalFilters | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> JournalPage:
        normalized = self._normalize(filters or JournalFilters())
        page = max(page, 1)
        size = page_size or self.settings.journal_default_page_size
        size = min(max(size, 1), self.settings.journal_max_page_size)

        entries, total = await journal_repo.find(
            self.db,
            normalized,
            offset=(page - 1) * size,
            limit=size,
        )
        return JournalPage(
            entries=entries,
            pagination=Pagination(
                page=page,
                page_size=size,
                total=total,
                total_pages=math.ceil(total / size) if total else 0,
            ),
        )

    async def activity_stats(self, window_days: int | None = None) -> list[ActivityStat]:
        days = window_days or self.settings.journal_stats_window_days
        since = utcnow() - timedelta(days=days)
        return await journal_repo.activity_stats(self.db, since)

    async def purge(self, actor: Actor, retention_days: int | None = None) -> int:
        """Delete entries older than the retention window; the purge itself is journaled."""
        days = retention_days or self.settings.journal_retention_days
        if days < 1:
            raise ValidationError("retention_days must be >= 1")
        cutoff = utcnow() - timedelta(days=days)

        async with translate_store_errors("purge_journal"):
            async with self.db.begin():
                deleted = await journal_repo.purge_older_than(self.db, cutoff)

        logger.info("Journal purged", deleted_count=deleted, cutoff=cutoff.isoformat())
        await self.recorder.record_best_effort(
            ActionType.JOURNAL_PURGE,
            actor,
            target_table="Journal",
            details=f"{deleted} entries older than {days} days deleted",
        )
        return deleted

"""Read-only access to the source-of-record database."""

from __future__ import annotations

import asyncio
from datetime import datetime, time, timedelta
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final

from sqlalchemy import create_engine, select

from docketsync.domain.ports import CaseSource

from .tables import build_layout

if TYPE_CHECKING:
    from collections.abc import Collection, Iterator, Sequence
    from datetime import date

    from sqlalchemy.engine import Engine
    from sqlalchemy.sql import ColumnElement

    from docketsync.config.storage import SourceConfig
    from docketsync.domain.model import CaseRecord, HearingEvent

    from .tables import SourceLayout

log = getLogger(__name__)

IN_CLAUSE_CHUNK: Final[int] = 500


def _chunks(ids: Sequence[int], size: int = IN_CLAUSE_CHUNK) -> Iterator[Sequence[int]]:
    for start in range(0, len(ids), size):
        yield ids[start : start + size]


class SqlCaseSource:
    """``CaseSource`` over SQLAlchemy Core.

    Queries run on a worker thread so the event loop keeps serving the board
    client while the source database answers.
    """

    def __init__(self, engine: Engine, layout: SourceLayout) -> None:
        self.engine = engine
        self.layout = layout

    @classmethod
    def from_config(cls, config: SourceConfig) -> SqlCaseSource:
        layout = build_layout(
            config.schema_variant,
            cases_table=config.cases_table,
            hearings_table=config.hearings_table,
        )
        engine = create_engine(config.uri, future=True, pool_pre_ping=True)
        log.info(
            f"Source reader using {layout.variant} layout "
            f"({config.cases_table}, {config.hearings_table})"
        )
        return cls(engine, layout)

    def dispose(self) -> None:
        self.engine.dispose()

    async def fetch_cases_created_on(self, day: date) -> Sequence[CaseRecord]:
        start = datetime.combine(day, time.min)
        created = self._case_column(self.layout.created_at)
        return await asyncio.to_thread(
            self._select_cases, created >= start, created < start + timedelta(days=1)
        )

    async def fetch_cases(self, source_ids: Collection[int]) -> Sequence[CaseRecord]:
        return await asyncio.to_thread(self._cases_by_id, sorted(set(source_ids)))

    async def fetch_hearing_events(
        self, source_ids: Collection[int]
    ) -> Sequence[HearingEvent]:
        return await asyncio.to_thread(self._hearings_by_case, sorted(set(source_ids)))

    async def resolve_case_number(self, case_number: str) -> int | None:
        wanted = case_number.strip()
        if not wanted:
            return None
        return await asyncio.to_thread(self._resolve_case_number, wanted)

    async def list_ids_created_since(self, cutoff: date) -> set[int]:
        created = self._case_column(self.layout.created_at)
        return await asyncio.to_thread(
            self._select_ids, created >= datetime.combine(cutoff, time.min)
        )

    async def list_ids_modified_since(self, since: datetime) -> set[int]:
        modified = self._case_column(self.layout.modified_at)
        return await asyncio.to_thread(self._select_ids, modified >= since)

    def _case_column(self, name: str) -> ColumnElement[Any]:
        return self.layout.cases.c[name]

    def _select_cases(self, *conditions: ColumnElement[bool]) -> list[CaseRecord]:
        layout = self.layout
        stmt = select(layout.cases).where(*conditions).order_by(layout.cases.c[layout.case_id])
        with self.engine.connect() as conn:
            return [layout.case_from_row(row) for row in conn.execute(stmt).mappings()]

    def _cases_by_id(self, source_ids: list[int]) -> list[CaseRecord]:
        cases: list[CaseRecord] = []
        id_column = self.layout.cases.c[self.layout.case_id]
        for chunk in _chunks(source_ids):
            cases.extend(self._select_cases(id_column.in_(chunk)))
        return cases

    def _hearings_by_case(self, source_ids: list[int]) -> list[HearingEvent]:
        layout = self.layout
        case_column = layout.hearings.c[layout.hearing_case_id]
        events: list[HearingEvent] = []
        with self.engine.connect() as conn:
            for chunk in _chunks(source_ids):
                stmt = select(layout.hearings).where(case_column.in_(chunk))
                events.extend(
                    layout.hearing_from_row(row) for row in conn.execute(stmt).mappings()
                )
        return events

    def _resolve_case_number(self, case_number: str) -> int | None:
        layout = self.layout
        id_column = layout.cases.c[layout.case_id]
        stmt = (
            select(id_column)
            .where(layout.cases.c[layout.case_number] == case_number)
            .order_by(id_column)
            .limit(1)
        )
        with self.engine.connect() as conn:
            value = conn.execute(stmt).scalar_one_or_none()
        return int(value) if value is not None else None

    def _select_ids(self, condition: ColumnElement[bool]) -> set[int]:
        id_column = self.layout.cases.c[self.layout.case_id]
        with self.engine.connect() as conn:
            rows = conn.execute(select(id_column).where(condition)).scalars()
            return {int(value) for value in rows}


if TYPE_CHECKING:

    def _source_check(engine: Engine, layout: SourceLayout) -> CaseSource:
        return SqlCaseSource(engine, layout)

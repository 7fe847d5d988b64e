"""Turn-time statistics and wait prediction"""

import uuid
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from tablebook.engine.errors import NotFound
from tablebook.engine.timeutil import Clock, format_12h, get_zone, round_up_to, utc_to_local
from tablebook.models.reservation import Reservation, ReservationStatus
from tablebook.models.table import RestaurantTable
from tablebook.schemas.settings import RestaurantConfig

logger = structlog.get_logger()

HISTORY_DAYS = 30
MIN_TURN_MINUTES = 5
MAX_TURN_MINUTES = 300
DEFAULT_TURN_MINUTES = 60
FALLBACK_MINUTES_PER_POSITION = 15
MIN_WAIT_MINUTES = 5


class TurnTimeStats(BaseModel):
    overall: Optional[float] = None
    by_party_size: Dict[int, float] = {}
    by_table: Dict[str, float] = {}
    sample_size: int = 0


class TableEstimate(BaseModel):
    table_id: str
    occupied: bool
    seated_at: Optional[datetime] = None
    estimated_free_at: Optional[datetime] = None
    minutes_until_free: int = 0
    based_on: str


class WaitEstimate(BaseModel):
    estimated_minutes: int
    estimated_time: str
    based_on: str


def compute_stats(rows: Iterable[Tuple[int, Optional[uuid.UUID], datetime, datetime]]) -> TurnTimeStats:
    """Average occupancy from (party_size, table_id, seated_at, completed_at) rows"""
    durations: List[float] = []
    by_party: Dict[int, List[float]] = defaultdict(list)
    by_table: Dict[str, List[float]] = defaultdict(list)

    for party_size, table_id, seated_at, completed_at in rows:
        minutes = (completed_at - seated_at).total_seconds() / 60
        if minutes < MIN_TURN_MINUTES or minutes > MAX_TURN_MINUTES:
            continue
        durations.append(minutes)
        by_party[party_size].append(minutes)
        if table_id is not None:
            by_table[str(table_id)].append(minutes)

    if not durations:
        return TurnTimeStats()
    return TurnTimeStats(
        overall=sum(durations) / len(durations),
        by_party_size={size: sum(v) / len(v) for size, v in by_party.items()},
        by_table={table: sum(v) / len(v) for table, v in by_table.items()},
        sample_size=len(durations),
    )


def expected_turn(stats: TurnTimeStats, table_id: Optional[uuid.UUID], party_size: int) -> Tuple[float, str]:
    """Best available average: table, else party size, else overall, else the default"""
    if table_id is not None and str(table_id) in stats.by_table:
        return stats.by_table[str(table_id)], "table"
    if party_size in stats.by_party_size:
        return stats.by_party_size[party_size], "party_size"
    if stats.overall is not None:
        return stats.overall, "overall"
    return float(DEFAULT_TURN_MINUTES), "default"


def fallback_wait(position: int) -> int:
    return max(MIN_WAIT_MINUTES, position * FALLBACK_MINUTES_PER_POSITION)


class TurnTimeEstimator:
    """Predicts when tables free up and how long waitlisted parties wait"""

    def __init__(self, db: AsyncSession, config: RestaurantConfig, clock: Clock):
        self.db = db
        self.config = config
        self.clock = clock
        self.zone = get_zone(config.timezone)

    async def load_stats(self) -> TurnTimeStats:
        since = self.clock() - timedelta(days=HISTORY_DAYS)
        result = await self.db.execute(
            select(
                Reservation.party_size,
                Reservation.table_id,
                Reservation.seated_at,
                Reservation.completed_at,
            ).where(
                Reservation.status == ReservationStatus.COMPLETED.value,
                Reservation.seated_at.is_not(None),
                Reservation.completed_at.is_not(None),
                Reservation.seated_at >= since,
            )
        )
        return compute_stats(result.all())

    async def _seated(self) -> List[Tuple[Reservation, RestaurantTable]]:
        result = await self.db.execute(
            select(Reservation, RestaurantTable)
            .join(RestaurantTable, Reservation.table_id == RestaurantTable.id)
            .where(
                Reservation.status == ReservationStatus.SEATED.value,
                Reservation.seated_at.is_not(None),
            )
        )
        return list(result.all())

    async def estimate_table(self, table_id: uuid.UUID) -> TableEstimate:
        table = await self.db.get(RestaurantTable, table_id)
        if table is None:
            raise NotFound("Table not found", table_id=str(table_id))

        result = await self.db.execute(
            select(Reservation)
            .where(
                Reservation.table_id == table_id,
                Reservation.status == ReservationStatus.SEATED.value,
                Reservation.seated_at.is_not(None),
            )
            .order_by(Reservation.seated_at.desc())
        )
        occupant = result.scalars().first()
        if occupant is None:
            return TableEstimate(table_id=str(table_id), occupied=False, based_on="vacant")

        stats = await self.load_stats()
        turn, source = expected_turn(stats, table_id, occupant.party_size)
        free_at = occupant.seated_at + timedelta(minutes=turn)
        remaining = max(0.0, (free_at - self.clock()).total_seconds() / 60)
        return TableEstimate(
            table_id=str(table_id),
            occupied=True,
            seated_at=occupant.seated_at,
            estimated_free_at=free_at,
            minutes_until_free=round_up_to(remaining),
            based_on=f"{source} average of {round(turn)} min",
        )

    async def estimate_wait(self, party_size: int, position: int) -> WaitEstimate:
        """Nth soonest departure among seated tables that fit the party"""
        position = max(position, 1)
        now = self.clock()
        stats = await self.load_stats()

        departures: List[Tuple[datetime, str]] = []
        if stats.sample_size:
            for reservation, table in await self._seated():
                if table.max_capacity < party_size:
                    continue
                turn, _ = expected_turn(stats, reservation.table_id, reservation.party_size)
                departures.append((reservation.seated_at + timedelta(minutes=turn), table.name))

        if departures:
            departures.sort(key=lambda item: item[0])
            departure, table_name = departures[min(position - 1, len(departures) - 1)]
            minutes = max(MIN_WAIT_MINUTES, round_up_to((departure - now).total_seconds() / 60))
            based_on = f"turnover of table {table_name}"
        else:
            minutes = round_up_to(fallback_wait(position))
            based_on = "position estimate"

        ready_at = utc_to_local(now + timedelta(minutes=minutes), self.zone)
        return WaitEstimate(
            estimated_minutes=minutes,
            estimated_time=format_12h(ready_at),
            based_on=based_on,
        )

"""
ELO Event Ledger

Append-only record of rating changes, tier changes and other ELO events.
Events are never updated; the only deletion path is age-based retention
cleanup.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from src.base import BaseEloStore, EloEvent, EloEventType
from src.elo.errors import EventLedgerWriteError

logger = logging.getLogger(__name__)


@dataclass
class EloEventData:
    """Event to record"""
    user_id: str
    event_type: EloEventType
    old_value: float
    new_value: float
    change: float
    category_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class EloStats:
    total_change: float = 0.0
    average_change: float = 0.0
    best_gain: float = 0.0
    worst_loss: float = 0.0
    event_count: int = 0
    tier_changes: int = 0


@dataclass
class LeaderboardChange:
    user_id: str
    total_change: float
    event_count: int
    best_gain: float


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_datetime(value: Union[str, datetime, None]) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return pd.to_datetime(value, utc=True).to_pydatetime()


def _row_to_event(row: Dict[str, Any]) -> EloEvent:
    return EloEvent(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        category_id=row.get("category_id"),
        event_type=EloEventType(row["event_type"]),
        old_value=float(row["old_value"]),
        new_value=float(row["new_value"]),
        change=float(row["change"]),
        metadata=row.get("metadata") or {},
        created_at=_as_datetime(row["created_at"]),
    )


async def record_elo_event(
    store: BaseEloStore,
    event_data: EloEventData,
    now: Optional[datetime] = None
) -> EloEvent:
    """
    Append an ELO event.

    Raises:
        EventLedgerWriteError: if the store rejects the write
    """
    record = {
        "id": str(uuid.uuid4()),
        "user_id": event_data.user_id,
        "category_id": event_data.category_id,
        "event_type": EloEventType(event_data.event_type).value,
        "old_value": float(event_data.old_value),
        "new_value": float(event_data.new_value),
        "change": float(event_data.change),
        "metadata": dict(event_data.metadata or {}),
        "created_at": now or _utcnow(),
    }

    try:
        saved = store.insert_event(record)
    except Exception as e:
        logger.error(f"❌ Failed to create ELO event for user {event_data.user_id}: {e}")
        raise EventLedgerWriteError(str(e)) from e

    event = _row_to_event(saved or record)
    logger.info(
        f"ELO event created: {event.event_type.value} for user {event.user_id}, change: {event.change:+.2f}"
    )
    return event


async def get_user_elo_events(
    store: BaseEloStore,
    user_id: str,
    limit: int = 50,
    offset: int = 0
) -> List[EloEvent]:
    rows = store.select_events(user_id=user_id, limit=limit, offset=offset)
    return [_row_to_event(row) for row in rows]


async def get_category_elo_events(
    store: BaseEloStore,
    category_id: str,
    limit: int = 50,
    offset: int = 0
) -> List[EloEvent]:
    rows = store.select_events(category_id=category_id, limit=limit, offset=offset)
    return [_row_to_event(row) for row in rows]


async def get_recent_elo_events(
    store: BaseEloStore,
    limit: int = 100,
    offset: int = 0,
    event_type: Optional[Union[EloEventType, str]] = None
) -> List[EloEvent]:
    """Recent events across all users, optionally filtered by type"""
    type_filter = EloEventType(event_type).value if event_type else None
    rows = store.select_events(event_type=type_filter, limit=limit, offset=offset)
    return [_row_to_event(row) for row in rows]


def _events_frame(rows: List[Dict[str, Any]]) -> pd.DataFrame:
    if not rows:
        return pd.DataFrame(columns=["user_id", "event_type", "change"])
    df = pd.DataFrame(rows)
    df["change"] = pd.to_numeric(df["change"], errors="coerce").fillna(0.0)
    return df


async def get_user_elo_stats(
    store: BaseEloStore,
    user_id: str,
    days: int = 30,
    now: Optional[datetime] = None
) -> EloStats:
    """
    ELO change statistics for a user over a trailing window.

    Returns:
        EloStats; all zeros when the user has no events in the window
    """
    cutoff = (now or _utcnow()) - timedelta(days=days)
    df = _events_frame(store.select_events(user_id=user_id, since=cutoff))

    if df.empty:
        return EloStats()

    changes = df["change"]
    return EloStats(
        total_change=float(changes.sum()),
        average_change=float(changes.mean()),
        best_gain=float(changes.max()),
        worst_loss=float(changes.min()),
        event_count=int(len(df)),
        tier_changes=int((df["event_type"] == EloEventType.TIER_CHANGE.value).sum()),
    )


async def get_elo_leaderboard_changes(
    store: BaseEloStore,
    days: int = 7,
    limit: int = 20,
    now: Optional[datetime] = None
) -> List[LeaderboardChange]:
    """Users ranked by summed ELO change over the trailing window (biggest gain first)"""
    cutoff = (now or _utcnow()) - timedelta(days=days)
    df = _events_frame(store.select_events(since=cutoff))

    if df.empty:
        return []

    gains = df["change"].where(df["change"] > 0)
    summary = (
        df.assign(gain=gains)
        .groupby("user_id")
        .agg(total_change=("change", "sum"), event_count=("change", "size"), best_gain=("gain", "max"))
        .fillna({"best_gain": 0.0})
        .sort_values("total_change", ascending=False, kind="mergesort")
        .head(limit)
    )

    return [
        LeaderboardChange(
            user_id=str(user_id),
            total_change=float(row["total_change"]),
            event_count=int(row["event_count"]),
            best_gain=float(row["best_gain"]),
        )
        for user_id, row in summary.iterrows()
    ]


async def cleanup_old_elo_events(
    store: BaseEloStore,
    days_old: int = 365,
    now: Optional[datetime] = None
) -> int:
    """
    Delete events older than days_old.

    Returns:
        Number of events deleted
    """
    cutoff = (now or _utcnow()) - timedelta(days=days_old)
    logger.info(f"🧹 Cleaning up ELO events older than {cutoff.date()}...")

    try:
        deleted_count = store.delete_events_before(cutoff)
    except Exception as e:
        logger.error(f"❌ Failed to cleanup old ELO events: {e}")
        raise

    logger.info(f"✅ Cleaned up {deleted_count:,} old ELO events")
    return deleted_count

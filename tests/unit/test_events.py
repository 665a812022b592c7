"""
Unit tests for the ELO event ledger
"""
from datetime import timedelta

import pytest

from src.base import EloEventType
from src.elo.errors import EventLedgerWriteError
from src.elo.events import (
    EloEventData,
    cleanup_old_elo_events,
    get_category_elo_events,
    get_elo_leaderboard_changes,
    get_recent_elo_events,
    get_user_elo_events,
    get_user_elo_stats,
    record_elo_event,
)


async def seed(store, now, user_id, changes, category_id='strength', days_ago=1,
               event_type=EloEventType.RATING_CHANGE):
    value = 1000.0
    for i, change in enumerate(changes):
        await record_elo_event(
            store,
            EloEventData(
                user_id=user_id,
                category_id=category_id,
                event_type=event_type,
                old_value=value,
                new_value=value + change,
                change=change,
            ),
            now=now - timedelta(days=days_ago, minutes=i),
        )
        value += change


class TestRecordEvent:
    """Test appending events"""

    @pytest.mark.asyncio
    async def test_record_returns_event(self, store, now):
        event = await record_elo_event(
            store,
            EloEventData(
                user_id='u1',
                category_id='strength',
                event_type='tier_change',
                old_value=999.0,
                new_value=1001.0,
                change=2.0,
                metadata={'old_tier': 'intermediate', 'new_tier': 'advanced', 'nested': {'n': [1, 2]}},
            ),
            now=now,
        )

        assert event.id
        assert event.event_type == EloEventType.TIER_CHANGE
        assert event.created_at == now
        assert event.metadata == {'old_tier': 'intermediate', 'new_tier': 'advanced', 'nested': {'n': [1, 2]}}
        assert len(store.events) == 1

    @pytest.mark.asyncio
    async def test_ids_are_unique(self, store, now):
        await seed(store, now, 'u1', [1.0, 2.0, 3.0])
        assert len({e['id'] for e in store.events}) == 3

    @pytest.mark.asyncio
    async def test_store_failure_raises_ledger_error(self, store, now):
        store.fail_event_writes = True
        with pytest.raises(EventLedgerWriteError):
            await record_elo_event(
                store,
                EloEventData(user_id='u1', event_type=EloEventType.RECOMPUTE, old_value=1, new_value=2, change=1),
                now=now,
            )


class TestQueries:
    """Test ledger queries and pagination"""

    @pytest.mark.asyncio
    async def test_user_events_newest_first(self, store, now):
        await seed(store, now, 'u1', [1.0, 2.0, 3.0])
        await seed(store, now, 'u2', [5.0])

        events = await get_user_elo_events(store, 'u1')
        assert [e.change for e in events] == [1.0, 2.0, 3.0]
        assert all(e.user_id == 'u1' for e in events)
        assert events[0].created_at > events[-1].created_at

    @pytest.mark.asyncio
    async def test_pagination(self, store, now):
        await seed(store, now, 'u1', [float(i) for i in range(1, 8)])

        page_one = await get_user_elo_events(store, 'u1', limit=3, offset=0)
        page_two = await get_user_elo_events(store, 'u1', limit=3, offset=3)
        page_three = await get_user_elo_events(store, 'u1', limit=3, offset=6)

        assert [e.change for e in page_one] == [1.0, 2.0, 3.0]
        assert [e.change for e in page_two] == [4.0, 5.0, 6.0]
        assert [e.change for e in page_three] == [7.0]

    @pytest.mark.asyncio
    async def test_category_events(self, store, now):
        await seed(store, now, 'u1', [1.0], category_id='strength')
        await seed(store, now, 'u1', [2.0], category_id='cardio')

        events = await get_category_elo_events(store, 'cardio')
        assert [e.change for e in events] == [2.0]

    @pytest.mark.asyncio
    async def test_recent_events_filtered_by_type(self, store, now):
        await seed(store, now, 'u1', [1.0, 2.0])
        await seed(store, now, 'u2', [50.0], event_type=EloEventType.TIER_CHANGE)

        assert len(await get_recent_elo_events(store)) == 3
        tier_events = await get_recent_elo_events(store, event_type='tier_change')
        assert [e.user_id for e in tier_events] == ['u2']


class TestStats:
    """Test per-user statistics over a trailing window"""

    @pytest.mark.asyncio
    async def test_user_stats(self, store, now):
        await seed(store, now, 'u1', [10.0, -4.0, 6.0])
        await seed(store, now, 'u1', [30.0], event_type=EloEventType.TIER_CHANGE)
        await seed(store, now, 'u1', [100.0], days_ago=45)

        stats = await get_user_elo_stats(store, 'u1', days=30, now=now)

        assert stats.event_count == 4
        assert stats.total_change == pytest.approx(42.0)
        assert stats.average_change == pytest.approx(10.5)
        assert stats.best_gain == pytest.approx(30.0)
        assert stats.worst_loss == pytest.approx(-4.0)
        assert stats.tier_changes == 1

    @pytest.mark.asyncio
    async def test_user_stats_empty(self, store, now):
        stats = await get_user_elo_stats(store, 'nobody', now=now)
        assert stats.event_count == 0
        assert stats.total_change == 0.0


class TestLeaderboard:
    """Test 'biggest movers' ranking"""

    @pytest.mark.asyncio
    async def test_ranked_by_total_change(self, store, now):
        await seed(store, now, 'steady', [5.0, 5.0, 5.0])
        await seed(store, now, 'rocket', [40.0, -10.0])
        await seed(store, now, 'slump', [-20.0])
        await seed(store, now, 'old', [500.0], days_ago=30)

        movers = await get_elo_leaderboard_changes(store, days=7, now=now)

        assert [m.user_id for m in movers] == ['rocket', 'steady', 'slump']
        assert movers[0].total_change == pytest.approx(30.0)
        assert movers[0].event_count == 2
        assert movers[0].best_gain == pytest.approx(40.0)
        assert movers[2].best_gain == 0.0

    @pytest.mark.asyncio
    async def test_limit(self, store, now):
        for i in range(5):
            await seed(store, now, f"u{i}", [float(i)])
        movers = await get_elo_leaderboard_changes(store, limit=2, now=now)
        assert [m.user_id for m in movers] == ['u4', 'u3']

    @pytest.mark.asyncio
    async def test_empty(self, store, now):
        assert await get_elo_leaderboard_changes(store, now=now) == []


class TestCleanup:

    @pytest.mark.asyncio
    async def test_deletes_only_old_events(self, store, now):
        await seed(store, now, 'u1', [1.0, 2.0], days_ago=400)
        await seed(store, now, 'u1', [3.0], days_ago=10)

        deleted = await cleanup_old_elo_events(store, days_old=365, now=now)

        assert deleted == 2
        assert [e['change'] for e in store.events] == [3.0]

    @pytest.mark.asyncio
    async def test_store_error_propagates(self, store, now):
        def boom(cutoff):
            raise ConnectionError("timeout")

        store.delete_events_before = boom
        with pytest.raises(ConnectionError):
            await cleanup_old_elo_events(store, now=now)

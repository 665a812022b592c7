"""Supabase-backed store for the ELO engine"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pandas as pd

from config.settings import DATA_ADAPTER_CONFIG, ELO_TABLES
from src.base import (
    BaseEloStore,
    EntryStatus,
    MeasurementEntry,
    MeasurementType,
    Rating,
    SexAtBirth,
)

logger = logging.getLogger(__name__)


def _to_iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _parse_timestamp(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return pd.to_datetime(value, utc=True).to_pydatetime()


def _encode_metadata(metadata: Optional[Dict[str, Any]]) -> str:
    return json.dumps(metadata or {}, default=str)


def _decode_metadata(value) -> Dict[str, Any]:
    if not value:
        return {}
    if isinstance(value, dict):
        return value
    try:
        return json.loads(value)
    except (TypeError, ValueError):
        logger.warning(f"⚠️ Unreadable event metadata: {str(value)[:100]}")
        return {}


class SupabaseEloStore(BaseEloStore):
    """
    BaseEloStore over a supabase client.

    Column naming follows the app schema: categories are "classes"
    (class_id) and measurement types are "metrics" (metric_id).
    """

    def __init__(self, supabase_client, tables: Optional[Dict[str, str]] = None,
                 in_batch_size: int = DATA_ADAPTER_CONFIG['in_batch_size'],
                 page_size: int = DATA_ADAPTER_CONFIG['page_size']):
        self.client = supabase_client
        self.tables = {**ELO_TABLES, **(tables or {})}
        self.in_batch_size = in_batch_size
        self.page_size = page_size

    def _table(self, name: str):
        return self.client.table(self.tables[name])

    def _fetch_all(self, build_query, order_by: Optional[str] = None) -> List[Dict[str, Any]]:
        """Page through a query with .range() until a short page comes back

        order_by gives a stable row order across pages.
        """
        rows = []
        offset = 0
        while True:
            query = build_query()
            if order_by:
                query = query.order(order_by)
            result = query.range(offset, offset + self.page_size - 1).execute()
            page = result.data or []
            rows.extend(page)
            if len(page) < self.page_size:
                return rows
            offset += self.page_size

    @staticmethod
    def _row_to_rating(row: Dict[str, Any]) -> Rating:
        return Rating(
            user_id=str(row['user_id']),
            category_id=str(row['class_id']),
            value=float(row['elo']),
            updated_at=_parse_timestamp(row.get('updated_at')),
        )

    # ------------------------------------------------------------------
    # Ratings
    # ------------------------------------------------------------------
    def get_rating(self, user_id: str, category_id: str) -> Optional[Rating]:
        result = self._table('ratings').select('user_id, class_id, elo, updated_at').eq(
            'user_id', user_id
        ).eq('class_id', category_id).limit(1).execute()

        if not result.data:
            return None
        return self._row_to_rating(result.data[0])

    def create_rating(self, user_id: str, category_id: str, value: float) -> Rating:
        now = datetime.now(timezone.utc)
        record = {'user_id': user_id, 'class_id': category_id, 'elo': float(value), 'updated_at': _to_iso(now)}
        result = self._table('ratings').insert(record).execute()
        return self._row_to_rating(result.data[0] if result.data else record)

    def update_rating(self, user_id: str, category_id: str, value: float) -> None:
        self._table('ratings').update({
            'elo': float(value),
            'updated_at': _to_iso(datetime.now(timezone.utc)),
        }).eq('user_id', user_id).eq('class_id', category_id).execute()

    def list_category_ratings(self, category_id: str) -> List[Rating]:
        rows = self._fetch_all(
            lambda: self._table('ratings').select('user_id, class_id, elo, updated_at').eq('class_id', category_id),
            order_by='user_id'
        )
        return [self._row_to_rating(row) for row in rows]

    def list_user_ratings(self, user_id: str) -> List[Rating]:
        result = self._table('ratings').select('user_id, class_id, elo, updated_at').eq('user_id', user_id).execute()
        return [self._row_to_rating(row) for row in (result.data or [])]

    def get_overall_rating(self, user_id: str) -> Optional[float]:
        result = self._table('users').select('id, overall_elo').eq('id', user_id).limit(1).execute()
        if not result.data:
            return None
        value = result.data[0].get('overall_elo')
        return float(value) if value is not None else 0.0

    def update_overall_rating(self, user_id: str, value: float) -> None:
        self._table('users').update({'overall_elo': float(value)}).eq('id', user_id).execute()

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------
    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        result = self._table('users').select(
            'id, sex_at_birth, date_of_birth, height_cm, weight_kg'
        ).eq('id', user_id).limit(1).execute()
        return result.data[0] if result.data else None

    # ------------------------------------------------------------------
    # Measurement types and entries
    # ------------------------------------------------------------------
    def list_measurement_types(self, category_id: str) -> List[MeasurementType]:
        result = self._table('measurement_types').select(
            'id, class_id, slug, higher_is_better, weight'
        ).eq('class_id', category_id).execute()

        measurement_types = []
        for row in result.data or []:
            higher_is_better = row.get('higher_is_better')
            weight = row.get('weight')
            measurement_types.append(MeasurementType(
                id=str(row['id']),
                category_id=str(row['class_id']),
                slug=row.get('slug') or '',
                higher_is_better=True if higher_is_better is None else bool(higher_is_better),
                weight=1.0 if weight is None else float(weight),
            ))
        return measurement_types

    def fetch_approved_entries(
        self,
        user_id: str,
        measurement_type_ids: List[str],
        since: datetime
    ) -> List[MeasurementEntry]:
        if not measurement_type_ids:
            return []

        since_iso = _to_iso(since)
        rows = []
        for i in range(0, len(measurement_type_ids), self.in_batch_size):
            batch = measurement_type_ids[i:i + self.in_batch_size]
            result = self._table('entries').select(
                'user_id, metric_id, value, status, created_at'
            ).eq('user_id', user_id).eq('status', EntryStatus.APPROVED.value).in_(
                'metric_id', batch
            ).gte('created_at', since_iso).execute()
            if result.data:
                rows.extend(result.data)

        return [
            MeasurementEntry(
                user_id=str(row['user_id']),
                measurement_type_id=str(row['metric_id']),
                value=float(row['value']),
                status=EntryStatus(row['status']),
                created_at=_parse_timestamp(row['created_at']),
            )
            for row in rows
            if row.get('value') is not None
        ]

    def fetch_population_values(
        self,
        measurement_type_id: str,
        since: datetime,
        sex_at_birth: Optional[SexAtBirth] = None,
        min_weight_kg: Optional[float] = None,
        max_weight_kg: Optional[float] = None
    ) -> List[float]:
        since_iso = _to_iso(since)
        rows = self._fetch_all(
            lambda: self._table('entries').select('user_id, value').eq(
                'metric_id', measurement_type_id
            ).eq('status', EntryStatus.APPROVED.value).gte('created_at', since_iso),
            order_by='id'
        )
        if not rows:
            return []

        entries_df = pd.DataFrame(rows)
        entries_df['value'] = pd.to_numeric(entries_df['value'], errors='coerce')
        entries_df = entries_df.dropna(subset=['value'])

        demographic_filter = sex_at_birth is not None or min_weight_kg is not None or max_weight_kg is not None
        if not demographic_filter or entries_df.empty:
            return entries_df['value'].astype(float).tolist()

        # Join entries to the users they belong to, in batches
        user_ids = entries_df['user_id'].dropna().unique().tolist()
        users_data = []
        for i in range(0, len(user_ids), self.in_batch_size):
            batch = user_ids[i:i + self.in_batch_size]
            users_result = self._table('users').select('id, sex_at_birth, weight_kg').in_('id', batch).execute()
            if users_result.data:
                users_data.extend(users_result.data)

        if not users_data:
            return []

        users_df = pd.DataFrame(users_data).rename(columns={'id': 'user_id'})
        users_df['weight_kg'] = pd.to_numeric(users_df['weight_kg'], errors='coerce')
        merged = entries_df.merge(users_df, on='user_id', how='inner')

        if sex_at_birth is not None:
            merged = merged[merged['sex_at_birth'].astype(str).str.upper() == SexAtBirth(sex_at_birth).value]
        if min_weight_kg is not None:
            merged = merged[merged['weight_kg'] >= min_weight_kg]
        if max_weight_kg is not None:
            merged = merged[merged['weight_kg'] <= max_weight_kg]

        return merged['value'].astype(float).tolist()

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------
    def insert_event(self, record: Dict[str, Any]) -> Dict[str, Any]:
        row = {
            'id': record['id'],
            'user_id': record['user_id'],
            'class_id': record.get('category_id'),
            'event_type': record['event_type'],
            'old_value': record['old_value'],
            'new_value': record['new_value'],
            'change': record['change'],
            'metadata': _encode_metadata(record.get('metadata')),
            'created_at': _to_iso(record['created_at']),
        }
        result = self._table('events').insert(row).execute()
        return self._event_from_row(result.data[0] if result.data else row)

    @staticmethod
    def _event_from_row(row: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'id': row['id'],
            'user_id': row['user_id'],
            'category_id': row.get('class_id'),
            'event_type': row['event_type'],
            'old_value': float(row['old_value']),
            'new_value': float(row['new_value']),
            'change': float(row['change']),
            'metadata': _decode_metadata(row.get('metadata')),
            'created_at': _parse_timestamp(row['created_at']),
        }

    def select_events(
        self,
        user_id: Optional[str] = None,
        category_id: Optional[str] = None,
        event_type: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[Dict[str, Any]]:
        def build_query():
            query = self._table('events').select('*')
            if user_id:
                query = query.eq('user_id', user_id)
            if category_id:
                query = query.eq('class_id', category_id)
            if event_type:
                query = query.eq('event_type', event_type)
            if since:
                query = query.gte('created_at', _to_iso(since))
            return query.order('created_at', desc=True)

        if limit is None:
            if offset:
                rows = self._fetch_all(build_query)[offset:]
            else:
                rows = self._fetch_all(build_query)
        else:
            if limit <= 0:
                return []
            rows = build_query().range(offset, offset + limit - 1).execute().data or []

        return [self._event_from_row(row) for row in rows]

    def delete_events_before(self, cutoff: datetime) -> int:
        response = self._table('events').delete().lt('created_at', _to_iso(cutoff)).execute()
        return len(response.data) if response.data else 0

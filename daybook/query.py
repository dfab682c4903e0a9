"""
Record Query Module

Shared query building for every tenant-scoped listing. Callers pass the
tenant predicate produced by ``authorization.scope_filter``; ``None`` means
no tenant restriction.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional, Union

from .errors import ValidationError
from .storage import StorageInterface, parse_timestamp


DateBound = Union[str, date, datetime, None]


def parse_date_bound(value: DateBound, end: bool = False) -> Optional[datetime]:
    """
    Normalize a date filter bound to an aware datetime.
    
    A bare date (``2024-03-31`` or a ``date``) used as an end bound covers the
    whole day; used as a start bound it means midnight UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return parse_timestamp(value)
    if isinstance(value, date):
        day = value
    else:
        text = str(value).strip()
        try:
            if len(text) == 10:
                day = date.fromisoformat(text)
            else:
                return parse_timestamp(text)
        except ValueError:
            raise ValidationError(f"Invalid date: {value}")
    bound = datetime.combine(day, time.min, tzinfo=timezone.utc)
    if end:
        bound = bound + timedelta(days=1) - timedelta(microseconds=1)
    return bound


def _sort_key(record: Dict[str, Any]):
    return (parse_timestamp(record['created_at']), record.get('id') or 0)


def select_records(
    storage: StorageInterface,
    table: str,
    tenant: Optional[str] = None,
    filters: Optional[Dict[str, Any]] = None,
    start: DateBound = None,
    end: DateBound = None,
    newest_first: bool = True
) -> List[Dict[str, Any]]:
    """
    Select raw records from a table.
    
    Args:
        storage: Entity store
        table: Table name
        tenant: Tenant value to restrict to, or None for every tenant
        filters: Exact-match field filters
        start: Inclusive lower bound on created_at
        end: Inclusive upper bound on created_at
        newest_first: Order by created_at descending (ascending if False)
        
    Returns:
        Matching records ordered by created_at
    """
    criteria = dict(filters or {})
    if tenant is not None:
        criteria['tenant'] = tenant

    records = storage.find(table, criteria) if criteria else storage.load_all(table)

    lower = parse_date_bound(start)
    upper = parse_date_bound(end, end=True)
    if lower or upper:
        selected = []
        for record in records:
            created = parse_timestamp(record['created_at'])
            if lower and created < lower:
                continue
            if upper and created > upper:
                continue
            selected.append(record)
        records = selected

    records.sort(key=_sort_key, reverse=newest_first)
    return records

"""
Supabase Client Helper for Truckinglane Hub.
Connection singleton plus the small set of query helpers the scoring and
health jobs share.

Usage:
    from scripts.lib.supabase_client import get_client, fetch_one, query_table

    client = get_client()
    account = fetch_one("accounts", "id", account_id)
    rows = query_table("leads", filters={"status": "pending"}, limit=50)
"""
from typing import Any, Dict, List, Optional

from scripts.lib.config import get_settings
from scripts.lib.errors import ConfigError, DataFetchError
from scripts.lib.logger import setup_logger

logger = setup_logger(__name__)

_client = None


def get_client():
    """Create and return a Supabase client (singleton)."""
    global _client
    if _client is not None:
        return _client

    settings = get_settings()
    if not settings.supabase_url or not settings.supabase_key:
        raise ConfigError(
            "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set in .env",
            config_key="SUPABASE_URL",
        )

    from supabase import create_client
    _client = create_client(settings.supabase_url, settings.supabase_key)
    logger.info("Supabase client connected to %s", settings.supabase_url)
    return _client


def reset_client() -> None:
    """Drop the cached client (used by tests and after settings change)."""
    global _client
    _client = None


def fetch_one(table: str, column: str, value: Any, select: str = "*",
              client=None) -> Optional[Dict]:
    """
    Fetch a single row where column = value.

    Returns:
        The row dict, or None when no row matches.

    Raises:
        DataFetchError: If the query itself fails.
    """
    client = client or get_client()
    try:
        result = (
            client.table(table)
            .select(select)
            .eq(column, value)
            .limit(1)
            .execute()
        )
    except Exception as e:
        logger.error("Supabase fetch failed on %s.%s=%s: %s", table, column, value, e)
        raise DataFetchError(f"Failed to read {table}: {e}", source=table)
    if result.data:
        return result.data[0]
    return None


def fetch_latest(table: str, order_by: str, select: str = "*",
                 client=None) -> Optional[Dict]:
    """Return the most recent row of a table ordered by a timestamp column."""
    client = client or get_client()
    result = (
        client.table(table)
        .select(select)
        .order(order_by, desc=True)
        .limit(1)
        .execute()
    )
    if result.data:
        return result.data[0]
    return None


def query_table(
    table: str,
    select: str = "*",
    filters: Dict[str, Any] = None,
    order_by: str = None,
    desc: bool = True,
    limit: int = 1000,
    offset: int = 0,
    gte: Dict[str, Any] = None,
    lte: Dict[str, Any] = None,
    client=None,
) -> List[Dict]:
    """
    Query a Supabase table with equality/range filters, ordering and paging.

    Args:
        table: Table name.
        select: Columns to select (default "*").
        filters: Dict of column=value equality filters.
        order_by: Column to order by.
        desc: Descending order (default True).
        limit: Max rows to return.
        offset: Rows to skip.
        gte: Dict of column >= value filters.
        lte: Dict of column <= value filters.

    Returns:
        List of row dicts.

    Raises:
        DataFetchError: If the query fails.
    """
    client = client or get_client()
    try:
        query = client.table(table).select(select)

        for col, val in (filters or {}).items():
            query = query.eq(col, val)
        for col, val in (gte or {}).items():
            query = query.gte(col, val)
        for col, val in (lte or {}).items():
            query = query.lte(col, val)

        if order_by:
            query = query.order(order_by, desc=desc)

        query = query.range(offset, offset + limit - 1)
        result = query.execute()
        return result.data or []
    except Exception as e:
        logger.error("Supabase query failed on %s: %s", table, e)
        raise DataFetchError(f"Failed to query {table}: {e}", source=table)


def count_rows(
    table: str,
    filters: Dict[str, Any] = None,
    gte: Dict[str, Any] = None,
    client=None,
) -> int:
    """
    Exact row count for equality/lower-bound filters (no rows transferred).

    Raises:
        DataFetchError: If the query fails.
    """
    client = client or get_client()
    try:
        query = client.table(table).select("*", count="exact", head=True)
        for col, val in (filters or {}).items():
            query = query.eq(col, val)
        for col, val in (gte or {}).items():
            query = query.gte(col, val)
        result = query.execute()
        return result.count or 0
    except Exception as e:
        logger.error("Supabase count failed on %s: %s", table, e)
        raise DataFetchError(f"Failed to count {table}: {e}", source=table)


def insert_row(table: str, row: Dict, client=None) -> bool:
    """Insert a single row. Failures are logged and reported as False."""
    try:
        client = client or get_client()
        client.table(table).insert(row).execute()
        return True
    except Exception as e:
        logger.error("Supabase insert failed on %s: %s", table, e)
        return False


def upsert_row(table: str, row: Dict, on_conflict: str, client=None) -> bool:
    """Upsert a single row keyed by on_conflict. Returns False on failure."""
    try:
        client = client or get_client()
        client.table(table).upsert(row, on_conflict=on_conflict).execute()
        return True
    except Exception as e:
        logger.error("Supabase upsert failed on %s: %s", table, e)
        return False

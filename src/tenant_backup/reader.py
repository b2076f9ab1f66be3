"""Paginated table reads.

The data store caps result sizes, so every read goes through
``read_all``, which pages with offset/limit until a short page comes
back.  A failing page never raises: the read stops, logs a warning and
returns what it has, with ``error`` set.

Usage:
    from tenant_backup.reader import read_all

    result = await read_all(adapter, "key_results",
                            filter_column="objective_id",
                            filter_value=objective_ids,
                            filter_mode="in")
    if result.ok:
        rows = result.rows
"""

import logging
from typing import Any, Literal

from pydantic import BaseModel, Field

from tenant_backup.adapters.base import DatabaseClient

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1000
DEFAULT_IN_CHUNK_SIZE = 200


class TableError(BaseModel):
    """A recovered per-table failure."""

    table: str
    stage: Literal["read", "delete", "batch"]
    message: str
    batch_start: int | None = None      # first row index of a failed batch


class TableRead(BaseModel):
    """Rows of one paginated read, plus the failure that cut it short."""

    table: str
    rows: list[dict[str, Any]] = Field(default_factory=list)
    pages: int = 0                      # select requests issued
    error: TableError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def read_all(
    adapter: DatabaseClient,
    table: str,
    filter_column: str | None = None,
    filter_value: Any = None,
    filter_mode: Literal["equals", "in"] = "equals",
    page_size: int = DEFAULT_PAGE_SIZE,
    in_chunk_size: int = DEFAULT_IN_CHUNK_SIZE,
) -> TableRead:
    """Read every matching row of ``table``, page by page.

    Pages are requested at offsets ``0, page_size, 2 * page_size, ...``
    until a page returns fewer than ``page_size`` rows, so ``N * page_size``
    rows cost ``N + 1`` requests and an empty table costs one.

    With ``filter_mode="in"``, ``filter_value`` is a collection of ids.
    An empty collection returns immediately without touching the store.
    Ids are de-duplicated and split into chunks of ``in_chunk_size``, each
    paged independently, so request URLs stay bounded.

    Args:
        adapter: Data store client.
        table: Table to read.
        filter_column: Column to filter on; ``None`` reads the whole table.
        filter_value: Value (``"equals"``) or collection of values (``"in"``).
        filter_mode: ``"equals"`` or ``"in"``.
        page_size: Rows per request.
        in_chunk_size: Maximum ids per ``in`` request.

    Returns:
        ``TableRead`` with the accumulated rows; ``error`` is set when a
        page failed.

    Raises:
        ValueError: If ``filter_mode`` is unknown or ``page_size`` < 1.
    """
    if page_size < 1:
        raise ValueError(f"page_size must be positive, got {page_size}")

    result = TableRead(table=table)

    if filter_column is None:
        queries: list[dict[str, Any]] = [{}]
    elif filter_mode == "equals":
        queries = [{"filters": {filter_column: filter_value}}]
    elif filter_mode == "in":
        values = list(dict.fromkeys(v for v in (filter_value or []) if v is not None))
        if not values:
            return result
        queries = [
            {"in_filters": {filter_column: values[i:i + in_chunk_size]}}
            for i in range(0, len(values), in_chunk_size)
        ]
    else:
        raise ValueError(f"Unknown filter_mode: {filter_mode!r}")

    for query in queries:
        offset = 0
        while True:
            result.pages += 1
            try:
                page = await adapter.select(
                    table, "*", offset=offset, limit=page_size, **query
                )
            except Exception as e:
                logger.warning(
                    f"Read of '{table}' failed at offset {offset}: {e} "
                    f"(keeping {len(result.rows)} rows read so far)"
                )
                result.error = TableError(table=table, stage="read", message=str(e))
                return result

            result.rows.extend(page)
            if len(page) < page_size:
                break
            offset += page_size

    return result

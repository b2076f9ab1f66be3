"""Table catalog: which tables exist and how they hang off the tenant root.

Usage:
    from tenant_backup.catalog import DEFAULT_CATALOG

    for level in DEFAULT_CATALOG.levels():
        print([t.name for t in level])
"""

from tenant_backup.catalog.default import DEFAULT_CATALOG, USER_COLUMNS
from tenant_backup.catalog.models import ForeignKey, TableCatalog, TableDescriptor

__all__ = [
    "DEFAULT_CATALOG",
    "USER_COLUMNS",
    "ForeignKey",
    "TableCatalog",
    "TableDescriptor",
]

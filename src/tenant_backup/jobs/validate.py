"""Backup document parsing and validation.

A backup document is the JSON object written by ``run_backup``::

    {
      "metadata": {"backup_id": ..., "backup_type": ..., "version": "2.0", ...},
      "tables": {
        "companies": {"data": [...], "record_count": 3, "backed_up_at": ...},
        "swot_analysis": {"schema_only": true, "record_count": 0, "backed_up_at": ...}
      }
    }

``validate_backup_document`` separates structural errors, which make a
document unusable for restore, from warnings such as orphaned child rows.
"""

import json
from typing import Any

from pydantic import BaseModel, Field

from tenant_backup.catalog.models import TableCatalog
from tenant_backup.errors import InvalidBackupError

BACKUP_FORMAT_VERSION = "2.0"
KNOWN_VERSIONS: frozenset[str] = frozenset({BACKUP_FORMAT_VERSION})


class ValidationReport(BaseModel):
    """Outcome of ``validate_backup_document``."""

    valid: bool = True
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    table_count: int = 0
    record_count: int = 0

    def format_report(self) -> str:
        """Format the report as human-readable text."""
        status = "valid" if self.valid else "invalid"
        lines = [
            f"Backup document {status}: {self.table_count} tables, "
            f"{self.record_count} records"
        ]
        if self.errors:
            lines.append(f"\n  Errors ({len(self.errors)}):")
            lines.extend(f"    - {e}" for e in self.errors)
        if self.warnings:
            lines.append(f"\n  Warnings ({len(self.warnings)}):")
            lines.extend(f"    - {w}" for w in self.warnings)
        return "\n".join(lines)


def load_backup_document(payload: bytes | str) -> dict[str, Any]:
    """Parse a serialized backup document.

    Raises:
        InvalidBackupError: If the payload is not UTF-8 JSON or not an object.
    """
    try:
        document = json.loads(payload)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InvalidBackupError(f"Backup document is not valid JSON: {e}") from e
    if not isinstance(document, dict):
        raise InvalidBackupError("Backup document must be a JSON object")
    return document


def validate_backup_document(
    document: Any, catalog: TableCatalog | None = None
) -> ValidationReport:
    """Check a parsed backup document before it is restored.

    Errors: non-object document, missing ``metadata``, missing or
    non-object ``tables``, table entries that are neither a data entry nor a
    schema-only marker.  Warnings: unknown format version, rows lacking the
    primary key, ``record_count`` disagreeing with the row count, and (when
    ``catalog`` is given) child rows whose parent is absent from the backup.

    Args:
        document: Parsed JSON document.
        catalog: Optional catalog used for primary keys and parent checks.

    Returns:
        ValidationReport; ``valid`` is ``False`` when any error was found.
    """
    report = ValidationReport()

    if not isinstance(document, dict):
        report.errors.append("Document is not an object")
        report.valid = False
        return report

    metadata = document.get("metadata")
    if not isinstance(metadata, dict):
        report.errors.append("Missing 'metadata' object")
    elif metadata.get("version") not in KNOWN_VERSIONS:
        report.warnings.append(f"Unknown backup format version: {metadata.get('version')!r}")

    tables = document.get("tables")
    if not isinstance(tables, dict):
        report.errors.append("Missing 'tables' object")
        report.valid = False
        return report

    data_tables: dict[str, list[dict]] = {}
    for name, entry in tables.items():
        if not isinstance(entry, dict):
            report.errors.append(f"{name}: entry is not an object")
            continue
        if entry.get("schema_only") is True:
            continue
        rows = entry.get("data")
        if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
            report.errors.append(f"{name}: 'data' must be a list of row objects")
            continue

        data_tables[name] = rows
        report.table_count += 1
        report.record_count += len(rows)

        record_count = entry.get("record_count")
        if record_count is not None and record_count != len(rows):
            report.warnings.append(
                f"{name}: record_count {record_count} but {len(rows)} rows present"
            )

        descriptor = catalog.get(name) if catalog else None
        pk = descriptor.pk if descriptor else "id"
        missing_pk = sum(1 for r in rows if r.get(pk) is None)
        if missing_pk:
            report.warnings.append(f"{name}: {missing_pk} rows without '{pk}'")

    if catalog is not None:
        for name, rows in data_tables.items():
            descriptor = catalog.get(name)
            if descriptor is None or descriptor.parent is None:
                continue
            parent = descriptor.parent
            if parent.table not in data_tables:
                continue
            parent_ids = {r.get(parent.references) for r in data_tables[parent.table]}
            orphans = sum(
                1
                for r in rows
                if r.get(parent.field) is not None and r.get(parent.field) not in parent_ids
            )
            if orphans:
                report.warnings.append(
                    f"{name}: {orphans} rows reference {parent.table} rows not in the backup"
                )

    report.valid = not report.errors
    return report

"""Table catalog models for the declarative tenant hierarchy.

The catalog is the only place that knows which tables exist and how
they hang off the tenant root.  Jobs never hard-code table names:
exports walk ``levels()``, backups use ``list_tables()``, imports
remap ids through each descriptor's ``parent`` and ``optional_refs``.

Usage:
    from tenant_backup.catalog.models import ForeignKey, TableCatalog, TableDescriptor

    catalog = TableCatalog(root="companies", tables=[
        TableDescriptor(name="companies", tenant_column="id"),
        TableDescriptor(name="strategic_plans", tenant_column="company_id"),
        TableDescriptor(name="strategic_pillars",
                        parent=ForeignKey(table="strategic_plans", field="plan_id")),
    ])
    catalog.levels()  # [[companies], [strategic_plans], [strategic_pillars]]
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ForeignKey(BaseModel):
    """Reference from a child column to a parent table column."""

    model_config = ConfigDict(frozen=True)

    table: str                  # parent table name
    field: str                  # FK column in this table
    references: str = "id"      # referenced column in the parent


class TableDescriptor(BaseModel):
    """Definition of one table for backup, export and restore."""

    model_config = ConfigDict(frozen=True)

    name: str                                       # table name
    pk: str = "id"                                  # primary key column
    tenant_column: str | None = None                # column holding the tenant id
    parent: ForeignKey | None = None                # scoping FK for tenant exports
    optional_refs: tuple[ForeignKey, ...] = ()      # other FKs remapped on import
    importable: bool = True                         # False: never written by tenant import

    @property
    def is_tenant_scoped(self) -> bool:
        """``True`` when the table is reachable from a tenant by column or parent."""
        return self.tenant_column is not None or self.parent is not None


class TableCatalog(BaseModel):
    """Ordered table catalog, parents declared before children.

    Raises:
        ValueError: On construction, if names repeat, ``root`` is not
            declared, or a parent is not declared before its child.
    """

    model_config = ConfigDict(frozen=True)

    root: str
    tables: tuple[TableDescriptor, ...] = Field(default_factory=tuple)
    tenant_key: str | None = None                   # tenant FK column name shared by many tables
    user_columns: tuple[str, ...] = ()              # user references nulled on tenant import

    @model_validator(mode="after")
    def _check_order(self) -> "TableCatalog":
        seen: set[str] = set()
        for table in self.tables:
            if table.name in seen:
                raise ValueError(f"Table '{table.name}' is declared twice")
            if table.parent is not None and table.parent.table not in seen:
                raise ValueError(
                    f"Table '{table.name}' references parent '{table.parent.table}' "
                    "which is not declared before it"
                )
            seen.add(table.name)
        if self.root not in seen:
            raise ValueError(f"Root table '{self.root}' is not declared")
        return self

    @property
    def names(self) -> list[str]:
        return [t.name for t in self.tables]

    def get(self, name: str) -> TableDescriptor | None:
        """Return the descriptor called ``name``, or ``None``."""
        for table in self.tables:
            if table.name == name:
                return table
        return None

    def children_of(self, name: str) -> list[TableDescriptor]:
        """Descriptors whose scoping parent is ``name``, in declared order."""
        return [t for t in self.tables if t.parent is not None and t.parent.table == name]

    def list_tables(
        self, scope: str = "all", names: list[str] | None = None
    ) -> list[TableDescriptor]:
        """Return the tables a job of ``scope`` should process.

        ``"selective"`` returns ``names`` in caller order; names the
        catalog does not know get a bare descriptor.  Every other scope,
        including unknown ones, returns the whole catalog.  Never raises.

        Args:
            scope: ``"all"``, ``"selective"`` or ``"schema_only"``.
            names: Table names for the selective scope.

        Returns:
            List of descriptors in processing order.
        """
        if scope == "selective" and names:
            return [self.get(name) or TableDescriptor(name=name) for name in names]
        return list(self.tables)

    def levels(self) -> list[list[TableDescriptor]]:
        """Group the tenant tree into breadth-first dependency levels.

        Level 0 is the root.  Level 1 holds tenant-column tables without a
        parent plus children of the root.  Each following level holds the
        children of the previous one.  System tables are left out.

        Returns:
            List of levels, each a list of descriptors in declared order.
        """
        root = self.get(self.root)
        levels = [[root]]
        first = [
            t
            for t in self.tables
            if t.name != self.root
            and (
                (t.parent is None and t.tenant_column is not None)
                or (t.parent is not None and t.parent.table == self.root)
            )
        ]
        current = first
        while current:
            levels.append(current)
            level_names = {t.name for t in current}
            current = [
                t
                for t in self.tables
                if t.parent is not None and t.parent.table in level_names
            ]
        return levels

    def tenant_tables(self) -> list[TableDescriptor]:
        """Every table reachable from the root, in declared order."""
        reachable = {t.name for level in self.levels() for t in level}
        return [t for t in self.tables if t.name in reachable]

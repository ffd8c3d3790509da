"""Small idempotent schema upgrades applied at startup.

``Base.metadata.create_all`` builds fresh databases. These helpers only add
what older databases lack: new nullable columns and the partial unique
indexes that back the single-active-record rules.
"""

from __future__ import annotations

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine


def _column_names(engine: Engine, table: str) -> set[str]:
    inspector = inspect(engine)
    if not inspector.has_table(table):
        return set()
    return {column["name"] for column in inspector.get_columns(table)}


def _add_column(engine: Engine, table: str, col_def: str) -> None:
    with engine.begin() as conn:
        conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {col_def}"))


def _create_index_if_not_exists(
    engine: Engine,
    table: str,
    name: str,
    cols: list[str],
    *,
    unique: bool = False,
    where: str | None = None,
) -> None:
    cols_sql = ", ".join(cols)
    unique_sql = "UNIQUE " if unique else ""
    where_sql = f" WHERE {where}" if where else ""
    with engine.begin() as conn:
        conn.execute(text(f"CREATE {unique_sql}INDEX IF NOT EXISTS {name} ON {table} ({cols_sql}){where_sql}"))


# Columns introduced after the first release; all nullable so ADD COLUMN is safe.
ADDITIVE_COLUMNS: dict[str, dict[str, str]] = {
    "inventory": {
        "assigned_to": "INTEGER",
        "specifications": "TEXT",
        "warranty_expiry": "TEXT",
    },
    "borrow_records": {
        "borrower_email": "TEXT",
        "return_processed_by": "INTEGER",
    },
    "disposals": {
        "certificate_number": "TEXT",
        "completed_at": "TEXT",
        "requested_by_id": "INTEGER",
    },
    "users": {
        "last_login": "TEXT",
    },
}


def run_migrations(engine: Engine) -> None:
    """Bring an existing database up to the schema the models expect."""

    for table, needed in ADDITIVE_COLUMNS.items():
        present = _column_names(engine, table)
        if not present:
            # Table absent; create_all owns fresh schema.
            continue
        for name, dtype in needed.items():
            if name not in present:
                _add_column(engine, table, f"{name} {dtype}")

    if engine.dialect.name not in {"sqlite", "postgresql"}:
        return
    if _column_names(engine, "borrow_records"):
        _create_index_if_not_exists(
            engine,
            "borrow_records",
            "uq_borrow_records_active_inventory",
            ["inventory_id"],
            unique=True,
            where="status IN ('Borrowed', 'Extended', 'Overdue')",
        )
    if _column_names(engine, "disposals"):
        _create_index_if_not_exists(
            engine,
            "disposals",
            "uq_disposals_open_inventory",
            ["inventory_id"],
            unique=True,
            where="status IN ('Pending', 'Approved')",
        )

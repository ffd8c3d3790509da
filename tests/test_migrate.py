import os
import sys
from pathlib import Path

from sqlalchemy import create_engine, inspect, text

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATABASE_URL", "sqlite://")

from asset_tracker.db.migrate import run_migrations


def test_run_migrations_upgrades_old_borrow_table():
    engine = create_engine("sqlite://")
    with engine.begin() as conn:
        conn.execute(
            text(
                "CREATE TABLE borrow_records ("
                "id INTEGER PRIMARY KEY, inventory_id INTEGER, borrower_name TEXT NOT NULL, "
                "borrow_date TEXT NOT NULL, expected_return_date TEXT NOT NULL, status TEXT NOT NULL, "
                "created_at TEXT NOT NULL, updated_at TEXT NOT NULL)"
            )
        )

    run_migrations(engine)
    run_migrations(engine)

    inspector = inspect(engine)
    columns = {column["name"] for column in inspector.get_columns("borrow_records")}
    assert {"borrower_email", "return_processed_by"} <= columns
    indexes = {index["name"]: index for index in inspector.get_indexes("borrow_records")}
    assert indexes["uq_borrow_records_active_inventory"]["unique"]
    assert not inspector.has_table("disposals")

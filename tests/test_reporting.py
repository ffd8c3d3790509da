import csv
import io
import os
import sys
from datetime import date, datetime
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATABASE_URL", "sqlite://")

from asset_tracker.crud.inventory import create_inventory
from asset_tracker.db.session import Base
from asset_tracker.schemas.inventory import InventoryCreate
from asset_tracker.services.borrowing import extend_borrow, process_return, release_asset, sweep_overdue
from asset_tracker.services.csv_export import borrow_csv, format_cell, inventory_csv, render_csv
from asset_tracker.services.disposals import approve_disposal, complete_disposal, request_disposal
from asset_tracker.services.reporting import (
    borrow_overview,
    borrow_report,
    department_report,
    disposal_overview,
    inventory_overview,
    inventory_report,
    monthly_borrow_trend,
)

# Ensure models are registered so metadata tables are created
from asset_tracker import models  # noqa: F401


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


def _asset(db, **overrides):
    fields = {"full_name": "Jane Doe", "department": "Finance", "pc_type": "LAPTOP"}
    fields.update(overrides)
    return create_inventory(db, InventoryCreate(**fields).model_dump())


def _borrow(db, item, borrow_date, expected, **overrides):
    payload = {
        "inventory_id": item.id,
        "borrower_name": "Sam Borrower",
        "borrower_department": "Finance",
        "borrow_date": borrow_date,
        "expected_return_date": expected,
    }
    payload.update(overrides)
    return release_asset(db, payload)


def _dispose(db, item, method, price=None, complete=True):
    disposal = request_disposal(
        db,
        {
            "inventory_id": item.id,
            "disposal_date": "2024-05-01",
            "disposal_method": method,
            "reason": "End of life",
            "sale_price": price,
        },
    )
    if complete:
        approve_disposal(db, disposal.id)
        complete_disposal(db, disposal.id)
    return disposal


def test_inventory_overview_counts(db_session):
    _asset(db_session, department="Finance", pc_type="LAPTOP")
    _asset(db_session, department="Finance", pc_type="DESKTOP", status="Available")
    _asset(db_session, department="Sales", pc_type="LAPTOP", status="Maintenance")
    borrowed = _asset(db_session, department="Sales", pc_type="DESKTOP")
    _borrow(db_session, borrowed, "2024-03-01", "2024-03-10")

    overview = inventory_overview(db_session)

    assert overview["total"] == 4
    assert overview["active"] == 1
    assert overview["available"] == 1
    assert overview["maintenance"] == 1
    assert overview["transfer"] == 1
    assert overview["borrowed"] == 1
    assert overview["laptops"] == 2
    assert overview["desktops"] == 2
    assert overview["by_department"] == {"Finance": 2, "Sales": 2}


def test_borrow_overview_counts_overdue_before_sweep(db_session):
    today = date(2024, 3, 15)
    _borrow(db_session, _asset(db_session, full_name="Late"), "2024-03-01", "2024-03-10")
    _borrow(db_session, _asset(db_session, full_name="Soon"), "2024-03-10", "2024-03-18")
    stretched = _borrow(db_session, _asset(db_session, full_name="Stretched"), "2024-03-01", "2024-03-05")
    extend_borrow(db_session, stretched.id, {"new_expected_return_date": "2024-04-30"})
    back = _borrow(db_session, _asset(db_session, full_name="Back"), "2024-02-01", "2024-02-05")
    process_return(db_session, back.id, today=date(2024, 2, 4))

    before = borrow_overview(db_session, today, window_days=7)
    assert before["total"] == 4
    assert before["active"] == 3
    assert before["returned"] == 1
    assert before["overdue"] == 1
    assert before["upcoming"] == 1

    sweep_overdue(db_session, today)
    after = borrow_overview(db_session, today, window_days=7)
    assert after["overdue"] == 1
    assert after["by_status"]["Overdue"] == 1


def test_monthly_trend_newest_first(db_session):
    for index, borrow_date in enumerate(("2024-01-05", "2024-01-20", "2024-03-02", "2022-01-01")):
        record = _borrow(db_session, _asset(db_session, full_name=f"A{index}"), borrow_date, borrow_date)
        process_return(db_session, record.id, today=date(2024, 3, 3))

    trend = monthly_borrow_trend(db_session, date(2024, 3, 31))

    assert trend == [{"month": "2024-03", "count": 1}, {"month": "2024-01", "count": 2}]


def test_monthly_trend_stops_at_current_month(db_session):
    for index, borrow_date in enumerate(("2024-03-02", "2024-04-01", "2025-01-15", "2023-03-31")):
        _borrow(db_session, _asset(db_session, full_name=f"B{index}"), borrow_date, borrow_date)

    trend = monthly_borrow_trend(db_session, date(2024, 3, 31))

    assert trend == [{"month": "2024-03", "count": 1}]
    assert len(monthly_borrow_trend(db_session, date(2025, 1, 1), months=2)) == 1


def test_disposal_overview_sale_value_and_recent(db_session):
    _dispose(db_session, _asset(db_session, full_name="Sold A"), "Sold", 100.25)
    _dispose(db_session, _asset(db_session, full_name="Trade"), "Trade-In", 50)
    _dispose(db_session, _asset(db_session, full_name="Recycled"), "Recycled")
    _dispose(db_session, _asset(db_session, full_name="Pending"), "Sold", 999, complete=False)

    overview = disposal_overview(db_session)

    assert overview["total"] == 4
    assert overview["pending"] == 1
    assert overview["completed"] == 3
    assert overview["by_method"] == {"Sold": 1, "Trade-In": 1, "Recycled": 1}
    assert overview["total_sale_value"] == pytest.approx(150.25)
    assert overview["recent_completions"] == 3

    much_later = disposal_overview(db_session, now=datetime(2999, 1, 1), recent_days=30)
    assert much_later["recent_completions"] == 0


def test_inventory_and_department_reports(db_session):
    _asset(db_session, full_name="Zed", department="Sales", windows_version="Windows 11")
    _asset(db_session, full_name="Amy", department="Finance", windows_version="Windows 10")
    _asset(db_session, full_name="Bea", department="Finance", pc_type="DESKTOP")

    report = inventory_report(db_session, {"department": "Finance"})
    assert [item.full_name for item in report["items"]] == ["Amy", "Bea"]
    assert report["summary"]["total_items"] == 2
    assert report["summary"]["by_pc_type"] == {"LAPTOP": 1, "DESKTOP": 1}
    assert report["summary"]["by_windows_version"] == {"Windows 10": 1}

    departments = department_report(db_session)["departments"]
    assert departments[0]["department"] == "Finance"
    assert departments[0]["total_items"] == 2
    assert departments[0]["laptops"] == 1
    assert departments[1]["department"] == "Sales"


def test_render_csv_quoting_and_line_endings():
    assert format_cell(None) == ""
    assert format_cell("plain") == "plain"
    assert format_cell("a,b") == '"a,b"'
    assert format_cell('say "hi"') == '"say ""hi"""'
    assert format_cell("line\nbreak") == '"line\nbreak"'
    assert format_cell("carriage\rreturn") == '"carriage\rreturn"'

    assert render_csv(["a", "b"], []) == "a,b\n"
    assert render_csv(["a", "b"], [[1, None], ["x", "y"]]) == "a,b\n1,\nx,y"


def test_inventory_csv_round_trips_through_csv_reader(db_session):
    _asset(db_session, full_name='Doe, "JJ"', department="Finance", remarks="Line one\nLine two", serial_number="S1")
    _asset(db_session, full_name="Plain", department="Sales")

    text = inventory_csv(inventory_report(db_session, {})["items"])

    assert not text.endswith("\n")
    rows = list(csv.reader(io.StringIO(text)))
    assert rows[0][:4] == ["fullName", "department", "pcName", "pcType"]
    assert len(rows[0]) == 13
    assert rows[1][0] == 'Doe, "JJ"'
    assert rows[1][12] == "Line one\nLine two"
    assert rows[2][0] == "Plain"
    assert rows[2][9] == ""


def test_borrow_csv_uses_na_fallbacks(db_session):
    item = _asset(db_session, pc_name="FIN-01", serial_number="SN-1")
    _borrow(db_session, item, "2024-03-01", "2024-03-10", purpose="Audit, Q1")

    records = borrow_report(db_session, {})["records"]
    rows = list(csv.reader(io.StringIO(borrow_csv(records))))

    assert rows[0] == [
        "borrowerName",
        "borrowerDepartment",
        "itemName",
        "pcType",
        "serialNumber",
        "borrowDate",
        "expectedReturnDate",
        "actualReturnDate",
        "status",
        "returnCondition",
        "purpose",
    ]
    assert rows[1] == [
        "Sam Borrower",
        "Finance",
        "FIN-01",
        "LAPTOP",
        "SN-1",
        "2024-03-01",
        "2024-03-10",
        "N/A",
        "Borrowed",
        "N/A",
        "Audit, Q1",
    ]

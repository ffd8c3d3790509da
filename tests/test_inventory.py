import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATABASE_URL", "sqlite://")

from asset_tracker.core.errors import ConflictError, InvalidStateError, NotFoundError
from asset_tracker.crud.filters import ListParams
from asset_tracker.crud.inventory import (
    bulk_import,
    create_inventory,
    delete_inventory,
    list_inventory,
    list_inventory_departments,
    require_inventory,
    update_inventory,
)
from asset_tracker.db.session import Base
from asset_tracker.models.borrow import BorrowRecord
from asset_tracker.schemas.inventory import InventoryCreate
from asset_tracker.services.borrowing import process_return, release_asset
from asset_tracker.services.disposals import request_disposal

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
    fields = {
        "full_name": "Jane Doe",
        "department": "Finance",
        "pc_type": "LAPTOP",
        "brand": "Dell",
        "model": "Latitude 5420",
    }
    fields.update(overrides)
    return create_inventory(db, InventoryCreate(**fields).model_dump())


def _borrow(db, item, **overrides):
    payload = {
        "inventory_id": item.id,
        "borrower_name": "Sam Borrower",
        "borrow_date": "2024-03-01",
        "expected_return_date": "2024-03-10",
    }
    payload.update(overrides)
    return release_asset(db, payload)


def test_create_inventory_applies_defaults(db_session):
    item = _asset(db_session, serial_number="SN-1", specifications={"ram": "16GB"})

    assert item.id is not None
    assert item.status == "Active User"
    assert item.user_status == "Active User"
    assert item.is_borrowed is False
    assert item.specifications == {"ram": "16GB"}
    assert item.equipment_name == "Dell Latitude 5420 (LAPTOP)"
    assert item.created_at.endswith("Z")


def test_duplicate_serial_number_is_rejected(db_session):
    _asset(db_session, serial_number="SN-DUP")

    with pytest.raises(ConflictError) as excinfo:
        _asset(db_session, serial_number="SN-DUP")

    assert excinfo.value.code == "duplicate_serial"


def test_list_inventory_paginates(db_session):
    for index in range(25):
        _asset(db_session, full_name=f"Owner {index:02d}", serial_number=f"SN-{index:02d}")

    page = list_inventory(db_session, ListParams(page=2, limit=10))

    assert len(page["items"]) == 10
    assert page["total"] == 25
    assert page["page"] == 2
    assert page["total_pages"] == 3

    last = list_inventory(db_session, ListParams(page=3, limit=10))
    assert len(last["items"]) == 5


def test_list_inventory_filters_and_search(db_session):
    _asset(db_session, full_name="Alice Smith", department="Finance", pc_type="DESKTOP")
    _asset(db_session, full_name="Bob Jones", department="Sales", pc_type="LAPTOP")
    _asset(db_session, full_name="Carol 100%", department="Sales", pc_type="LAPTOP")

    sales = list_inventory(db_session, ListParams(filters={"department": "Sales"}))
    assert {item.full_name for item in sales["items"]} == {"Bob Jones", "Carol 100%"}

    desktops = list_inventory(db_session, ListParams(filters={"pc_type": "DESKTOP"}))
    assert [item.full_name for item in desktops["items"]] == ["Alice Smith"]

    searched = list_inventory(db_session, ListParams(search="smith"))
    assert [item.full_name for item in searched["items"]] == ["Alice Smith"]

    # Wildcards in the search term are literal.
    percent = list_inventory(db_session, ListParams(search="100%"))
    assert [item.full_name for item in percent["items"]] == ["Carol 100%"]

    blank = list_inventory(db_session, ListParams(filters={"department": ""}))
    assert blank["total"] == 3


def test_unknown_boolean_filter_matches_nothing(db_session):
    _asset(db_session)

    result = list_inventory(db_session, ListParams(filters={"is_borrowed": "maybe"}))

    assert result["items"] == []
    assert result["total"] == 0
    assert result["total_pages"] == 0


def test_sort_by_column_and_unknown_column_falls_back(db_session):
    for name in ("Charlie", "Alpha", "Bravo"):
        _asset(db_session, full_name=name)

    ascending = list_inventory(db_session, ListParams(sort_by="full_name", sort_order="asc"))
    assert [item.full_name for item in ascending["items"]] == ["Alpha", "Bravo", "Charlie"]

    fallback = list_inventory(db_session, ListParams(sort_by="password_hash"))
    assert fallback["total"] == 3


def test_update_inventory_rules_for_retired_and_borrowed(db_session):
    item = _asset(db_session)
    _borrow(db_session, item)

    with pytest.raises(ConflictError) as excinfo:
        update_inventory(db_session, item, {"status": "Retired"})
    assert excinfo.value.code == "asset_borrowed"

    other = _asset(db_session, full_name="Retired Owner")
    update_inventory(db_session, other, {"status": "Retired"})
    with pytest.raises(InvalidStateError) as excinfo:
        update_inventory(db_session, other, {"status": "Available"})
    assert excinfo.value.code == "asset_retired"

    renamed = update_inventory(db_session, other, {"remarks": "Storage room"})
    assert renamed.remarks == "Storage room"


def test_unknown_assignee_is_rejected(db_session):
    with pytest.raises(NotFoundError) as excinfo:
        _asset(db_session, assigned_to=999)
    assert excinfo.value.code == "user_not_found"

    item = _asset(db_session)
    with pytest.raises(NotFoundError) as excinfo:
        update_inventory(db_session, item, {"assigned_to": 999})
    assert excinfo.value.code == "user_not_found"
    assert require_inventory(db_session, item.id).assigned_to is None


def test_retire_loses_to_borrow_committed_by_another_session(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'race.db'}", connect_args={"check_same_thread": False})
    Sessions = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    first, second = Sessions(), Sessions()
    try:
        item_id = _asset(first).id
        stale = require_inventory(first, item_id)
        assert stale.is_borrowed is False

        _borrow(second, require_inventory(second, item_id))

        with pytest.raises(ConflictError) as excinfo:
            update_inventory(first, stale, {"status": "Retired"})
        assert excinfo.value.code == "asset_borrowed"
    finally:
        first.close()
        second.close()

    fresh = Sessions()
    try:
        current = require_inventory(fresh, item_id)
        assert current.status != "Retired"
        assert current.is_borrowed is True
    finally:
        fresh.close()
        engine.dispose()


def test_reactivation_loses_to_retirement_by_another_session(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'retire.db'}", connect_args={"check_same_thread": False})
    Sessions = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    first, second = Sessions(), Sessions()
    try:
        item_id = _asset(first, status="Available").id
        stale = require_inventory(first, item_id)

        update_inventory(second, require_inventory(second, item_id), {"status": "Retired"})

        with pytest.raises(InvalidStateError) as excinfo:
            update_inventory(first, stale, {"status": "Maintenance"})
        assert excinfo.value.code == "asset_retired"
    finally:
        first.close()
        second.close()

    fresh = Sessions()
    try:
        assert require_inventory(fresh, item_id).status == "Retired"
    finally:
        fresh.close()
        engine.dispose()


def test_update_inventory_ignores_borrowed_flag(db_session):
    item = _asset(db_session)

    updated = update_inventory(db_session, item, {"is_borrowed": True, "pc_name": "FIN-01"})

    assert updated.is_borrowed is False
    assert updated.pc_name == "FIN-01"


def test_delete_inventory_keeps_history(db_session):
    item = _asset(db_session)
    record = _borrow(db_session, item)
    process_return(db_session, record.id, today=None)

    delete_inventory(db_session, item.id)

    with pytest.raises(NotFoundError):
        require_inventory(db_session, item.id)
    history = db_session.get(BorrowRecord, record.id)
    assert history is not None
    assert history.inventory_id is None
    assert history.status == "Returned"


def test_delete_inventory_blocked_while_borrowed_or_disposing(db_session):
    borrowed = _asset(db_session, full_name="Borrowed")
    _borrow(db_session, borrowed)
    with pytest.raises(ConflictError) as excinfo:
        delete_inventory(db_session, borrowed.id)
    assert excinfo.value.code == "asset_borrowed"
    assert require_inventory(db_session, borrowed.id).is_borrowed is True

    disposing = _asset(db_session, full_name="Disposing")
    request_disposal(
        db_session,
        {
            "inventory_id": disposing.id,
            "disposal_date": "2024-04-01",
            "disposal_method": "Recycled",
            "reason": "End of life",
        },
    )
    with pytest.raises(ConflictError) as excinfo:
        delete_inventory(db_session, disposing.id)
    assert excinfo.value.code == "disposal_in_progress"


def test_bulk_import_reports_bad_rows(db_session):
    _asset(db_session, serial_number="SN-EXISTING")

    result = bulk_import(
        db_session,
        [
            {"fullName": "Import One", "department": "IT", "pcType": "LAPTOP", "serialNumber": "SN-NEW"},
            {"fullName": "Import Two", "department": "IT"},
            {"full_name": "Import Three", "department": "IT", "pc_type": "DESKTOP", "serial_number": "SN-EXISTING"},
            {"full_name": "Import Four", "department": "HR", "pc_type": "DESKTOP"},
        ],
    )

    assert result["success"] == 2
    assert result["failed"] == 2
    assert [error["index"] for error in result["errors"]] == [1, 2]
    assert "pc_type" in result["errors"][0]["error"] or "pcType" in result["errors"][0]["error"]
    assert list_inventory_departments(db_session) == ["Finance", "HR", "IT"]

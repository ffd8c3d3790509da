import os
import sys
from datetime import date
from pathlib import Path

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATABASE_URL", "sqlite://")

from asset_tracker.core.errors import ConflictError, DomainValidationError, InvalidStateError, NotFoundError
from asset_tracker.crud.borrows import active_borrow_for, list_overdue, list_upcoming_returns
from asset_tracker.crud.inventory import create_inventory, require_inventory, update_inventory
from asset_tracker.db.session import Base
from asset_tracker.models.borrow import BorrowRecord
from asset_tracker.schemas.inventory import InventoryCreate
from asset_tracker.services.borrowing import (
    delete_borrow_record,
    extend_borrow,
    process_return,
    release_asset,
    send_return_reminders,
    sweep_overdue,
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


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def send(self, message):
        self.sent.append(message)


class ExplodingNotifier:
    def send(self, message):
        raise RuntimeError("mail queue down")


def _asset(db, **overrides):
    fields = {"full_name": "Jane Doe", "department": "Finance", "pc_type": "LAPTOP", "pc_name": "FIN-LT-01"}
    fields.update(overrides)
    return create_inventory(db, InventoryCreate(**fields).model_dump())


def _borrow(db, item, notifier=None, **overrides):
    payload = {
        "inventory_id": item.id,
        "borrower_name": "Sam Borrower",
        "borrower_email": "sam@example.com",
        "borrower_department": "Finance",
        "borrow_date": date(2024, 3, 1),
        "expected_return_date": date(2024, 3, 10),
        "purpose": "Site visit",
    }
    payload.update(overrides)
    return release_asset(db, payload, approved_by=None, notifier=notifier)


def test_release_marks_asset_borrowed_and_notifies(db_session):
    item = _asset(db_session)
    notifier = RecordingNotifier()

    record = _borrow(db_session, item, notifier=notifier)

    assert record.status == "Borrowed"
    assert record.borrow_date == "2024-03-01"
    assert record.expected_return_date == "2024-03-10"
    asset = require_inventory(db_session, item.id)
    assert asset.is_borrowed is True
    assert asset.status == "Transfer"
    assert active_borrow_for(db_session, item.id).id == record.id

    assert len(notifier.sent) == 1
    message = notifier.sent[0]
    assert message.to == "sam@example.com"
    assert message.subject == "Equipment Borrow Confirmation"
    assert "FIN-LT-01" in message.text


def test_release_without_email_sends_nothing(db_session):
    item = _asset(db_session)
    notifier = RecordingNotifier()

    _borrow(db_session, item, notifier=notifier, borrower_email=None)

    assert notifier.sent == []


def test_notifier_failure_does_not_undo_release(db_session):
    item = _asset(db_session)

    record = _borrow(db_session, item, notifier=ExplodingNotifier())

    assert record.id is not None
    assert require_inventory(db_session, item.id).is_borrowed is True


def test_second_release_of_same_asset_conflicts(db_session):
    item = _asset(db_session)
    _borrow(db_session, item)

    with pytest.raises(ConflictError) as excinfo:
        _borrow(db_session, item, borrower_name="Someone Else")

    assert excinfo.value.code == "already_borrowed"


def test_release_to_unknown_borrower_is_rejected(db_session):
    item = _asset(db_session)

    with pytest.raises(NotFoundError) as excinfo:
        _borrow(db_session, item, borrower_id=999)

    assert excinfo.value.code == "user_not_found"
    assert require_inventory(db_session, item.id).is_borrowed is False
    assert active_borrow_for(db_session, item.id) is None


def test_concurrent_releases_have_a_single_winner(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'race.db'}", connect_args={"check_same_thread": False})
    Sessions = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    first, second = Sessions(), Sessions()
    try:
        item_id = _asset(first).id
        assert require_inventory(second, item_id).is_borrowed is False

        winner = _borrow(first, require_inventory(first, item_id))
        with pytest.raises(ConflictError) as excinfo:
            _borrow(second, require_inventory(second, item_id), borrower_name="Someone Else")
        assert excinfo.value.code == "already_borrowed"
    finally:
        first.close()
        second.close()

    fresh = Sessions()
    try:
        active = fresh.execute(
            select(BorrowRecord).where(BorrowRecord.inventory_id == item_id, BorrowRecord.status != "Returned")
        ).unique().scalars().all()
        assert [record.id for record in active] == [winner.id]
        assert active[0].borrower_name == "Sam Borrower"
    finally:
        fresh.close()
        engine.dispose()


def test_active_borrow_index_rejects_second_record(db_session):
    item = _asset(db_session)
    # A release that committed its record but not yet the asset flag.
    db_session.add(
        BorrowRecord(
            inventory_id=item.id,
            borrower_name="Other Desk",
            borrow_date="2024-03-01",
            expected_return_date="2024-03-05",
            status="Borrowed",
            created_at="2024-03-01T00:00:00",
            updated_at="2024-03-01T00:00:00",
        )
    )
    db_session.commit()

    with pytest.raises(ConflictError) as excinfo:
        _borrow(db_session, item)

    assert excinfo.value.code == "already_borrowed"
    db_session.expire_all()
    assert require_inventory(db_session, item.id).is_borrowed is False
    records = db_session.execute(select(BorrowRecord).where(BorrowRecord.inventory_id == item.id)).unique().scalars().all()
    assert [record.borrower_name for record in records] == ["Other Desk"]


def test_release_rejects_missing_retired_and_bad_dates(db_session):
    with pytest.raises(NotFoundError):
        release_asset(
            db_session,
            {"inventory_id": 999, "borrower_name": "X", "borrow_date": "2024-01-01", "expected_return_date": "2024-01-02"},
        )

    retired = _asset(db_session, full_name="Retired")
    update_inventory(db_session, retired, {"status": "Retired"})
    with pytest.raises(InvalidStateError) as excinfo:
        _borrow(db_session, retired)
    assert excinfo.value.code == "asset_retired"

    item = _asset(db_session)
    with pytest.raises(DomainValidationError) as excinfo:
        _borrow(db_session, item, expected_return_date=date(2024, 2, 1))
    assert excinfo.value.code == "invalid_return_date"
    assert require_inventory(db_session, item.id).is_borrowed is False


def test_return_good_and_damaged(db_session):
    good = _asset(db_session, full_name="Good")
    damaged = _asset(db_session, full_name="Damaged")
    notifier = RecordingNotifier()
    good_record = _borrow(db_session, good)
    damaged_record = _borrow(db_session, damaged)

    returned = process_return(
        db_session,
        good_record.id,
        {"notes": "All accessories present"},
        notifier=notifier,
        today=date(2024, 3, 8),
    )
    assert returned.status == "Returned"
    assert returned.actual_return_date == "2024-03-08"
    assert returned.return_condition == "Good"
    assert returned.notes == "All accessories present"
    asset = require_inventory(db_session, good.id)
    assert asset.is_borrowed is False
    assert asset.status == "Active User"
    assert notifier.sent[0].subject == "Equipment Return Confirmation"

    process_return(db_session, damaged_record.id, {"return_condition": "Damaged"}, today=date(2024, 3, 9))
    assert require_inventory(db_session, damaged.id).status == "Maintenance"


def test_return_twice_is_rejected(db_session):
    item = _asset(db_session)
    record = _borrow(db_session, item)
    process_return(db_session, record.id, today=date(2024, 3, 5))

    with pytest.raises(InvalidStateError) as excinfo:
        process_return(db_session, record.id, today=date(2024, 3, 6))

    assert excinfo.value.code == "already_returned"


def test_asset_can_be_borrowed_again_after_return(db_session):
    item = _asset(db_session)
    first = _borrow(db_session, item)
    process_return(db_session, first.id, today=date(2024, 3, 5))

    second = _borrow(db_session, item, borrow_date=date(2024, 3, 6), expected_return_date=date(2024, 3, 20))

    assert second.id != first.id
    assert active_borrow_for(db_session, item.id).id == second.id


def test_extend_appends_reason_to_notes(db_session):
    item = _asset(db_session)
    record = _borrow(db_session, item, notes="Handle with care")

    extended = extend_borrow(db_session, record.id, {"new_expected_return_date": "2024-03-20", "reason": "Project slip"})

    assert extended.status == "Extended"
    assert extended.expected_return_date == "2024-03-20"
    assert extended.notes == "Handle with care\n\nExtension: Project slip"

    again = extend_borrow(db_session, record.id, {"new_expected_return_date": date(2024, 3, 25)})
    assert again.notes.endswith("Extension: No reason provided")

    with pytest.raises(DomainValidationError):
        extend_borrow(db_session, record.id, {"new_expected_return_date": "2024-02-01"})


def test_sweep_marks_overdue_once(db_session):
    late = _borrow(db_session, _asset(db_session, full_name="Late"), expected_return_date=date(2024, 3, 5))
    due_today = _borrow(db_session, _asset(db_session, full_name="Due"), expected_return_date=date(2024, 3, 10))
    returned = _borrow(db_session, _asset(db_session, full_name="Back"), expected_return_date=date(2024, 3, 2))
    process_return(db_session, returned.id, today=date(2024, 3, 2))

    as_of = date(2024, 3, 10)
    assert [record.id for record in list_overdue(db_session, as_of)] == [late.id]

    assert sweep_overdue(db_session, as_of) == 1
    assert sweep_overdue(db_session, as_of) == 0

    db_session.refresh(late)
    db_session.refresh(due_today)
    db_session.refresh(returned)
    assert late.status == "Overdue"
    assert due_today.status == "Borrowed"
    assert returned.status == "Returned"

    # Overdue records can still come back.
    process_return(db_session, late.id, today=as_of)
    assert list_overdue(db_session, as_of) == []


def test_upcoming_returns_and_reminders(db_session):
    today = date(2024, 3, 1)
    soon = _borrow(db_session, _asset(db_session, full_name="Soon"), expected_return_date=date(2024, 3, 3))
    _borrow(db_session, _asset(db_session, full_name="Later"), expected_return_date=date(2024, 3, 20))
    _borrow(
        db_session,
        _asset(db_session, full_name="Silent"),
        borrower_email=None,
        expected_return_date=date(2024, 3, 4),
    )

    upcoming = list_upcoming_returns(db_session, today, 3)
    assert [record.borrower_name for record in upcoming] == ["Sam Borrower", "Sam Borrower"]
    assert upcoming[0].id == soon.id

    outbox = []
    result = send_return_reminders(db_session, 3, today=today, send=lambda message: outbox.append(message) or True)

    assert result == {"total_records": 1, "emails_sent": 1}
    assert outbox[0].subject == "Equipment Return Reminder"
    assert outbox[0].to == "sam@example.com"


def test_delete_active_borrow_releases_asset(db_session):
    item = _asset(db_session)
    record = _borrow(db_session, item)

    delete_borrow_record(db_session, record.id)

    asset = require_inventory(db_session, item.id)
    assert asset.is_borrowed is False
    assert active_borrow_for(db_session, item.id) is None
    with pytest.raises(NotFoundError):
        delete_borrow_record(db_session, record.id)

from datetime import timedelta

import pytest

from app.models.attendant_status import AttendantStatus, AttendantStatusType
from app.services import attendant_status_service


def test_get_status_absent_returns_none(db):
    assert attendant_status_service.get_status(db, user_id=1, company_id=1) is None


def test_set_status_creates_record_with_defaults(db, make_company, now):
    make_company(1)

    record = attendant_status_service.set_status(db, 7, 1, AttendantStatusType.AVAILABLE, now=now)

    assert record.status == "available"
    assert record.active_chats == 0
    assert record.max_chats == 3
    assert record.last_activity_at == now


def test_set_status_offline_keeps_load(db, make_company, make_attendant, now):
    make_company(1)
    make_attendant(7, 1, active_chats=2)

    record = attendant_status_service.set_status(db, 7, 1, "offline", now=now + timedelta(minutes=1))

    assert record.status == "offline"
    assert record.active_chats == 2
    assert record.last_activity_at == now + timedelta(minutes=1)


def test_set_max_chats_rejects_negative(db):
    with pytest.raises(ValueError):
        attendant_status_service.set_max_chats(db, 7, 1, -1)


def test_set_max_chats_below_load_does_not_unassign(db, make_company, make_attendant):
    make_company(1)
    make_attendant(7, 1, active_chats=3, max_chats=3)

    record = attendant_status_service.set_max_chats(db, 7, 1, 1)

    assert record.max_chats == 1
    assert record.active_chats == 3
    assert attendant_status_service.list_available(db, 1) == []


def test_heartbeat_is_idempotent(db, make_company, make_attendant, now):
    make_company(1)
    make_attendant(7, 1, status="busy", last_activity_at=now - timedelta(minutes=5))

    attendant_status_service.record_heartbeat(db, 7, 1, now=now)
    attendant_status_service.record_heartbeat(db, 7, 1, now=now)

    assert db.query(AttendantStatus).filter(AttendantStatus.user_id == 7).count() == 1
    record = attendant_status_service.get_status(db, 7, 1)
    assert record.status == "busy"
    assert record.last_activity_at == now


def test_increment_load_adjusts_and_floors_at_zero(db, make_company, make_attendant):
    make_company(1)
    make_attendant(7, 1, active_chats=1)

    assert attendant_status_service.increment_load(db, 7, 1, 1) is True
    assert attendant_status_service.get_status(db, 7, 1).active_chats == 2

    attendant_status_service.increment_load(db, 7, 1, -1)
    attendant_status_service.increment_load(db, 7, 1, -1)
    attendant_status_service.increment_load(db, 7, 1, -1)
    assert attendant_status_service.get_status(db, 7, 1).active_chats == 0


def test_increment_load_creates_missing_record(db, make_company):
    make_company(1)

    assert attendant_status_service.increment_load(db, 9, 1, 1) is True
    record = attendant_status_service.get_status(db, 9, 1)
    assert record.active_chats == 1
    assert record.status == "offline"


def test_decrement_missing_record_returns_false(db):
    assert attendant_status_service.increment_load(db, 9, 1, -1) is False


def test_reserve_capacity_respects_bound_and_availability(db, make_company, make_attendant, now):
    make_company(1)
    make_attendant(1, 1, max_chats=1)
    make_attendant(2, 1, status="away")

    assert attendant_status_service.reserve_capacity(db, 1, 1, now=now) is True
    assert attendant_status_service.reserve_capacity(db, 1, 1, now=now) is False
    assert attendant_status_service.reserve_capacity(db, 2, 1, now=now) is False

    first = attendant_status_service.get_status(db, 1, 1)
    assert first.active_chats == 1
    assert first.last_assigned_at == now


def test_count_by_status_includes_all_states(db, make_company, make_attendant):
    make_company(1)
    make_company(2)
    make_attendant(1, 1, status="available")
    make_attendant(2, 1, status="available")
    make_attendant(3, 1, status="away")
    make_attendant(4, 2, status="busy")

    assert attendant_status_service.count_by_status(db, 1) == {
        "available": 2,
        "busy": 0,
        "away": 1,
        "offline": 0,
    }


def test_average_load_skips_zero_capacity(db, make_company, make_attendant):
    make_company(1)
    make_attendant(1, 1, active_chats=1, max_chats=2)
    make_attendant(2, 1, active_chats=3, max_chats=3)
    make_attendant(3, 1, active_chats=0, max_chats=0)

    assert attendant_status_service.average_load(db, 1) == pytest.approx(0.75)
    assert attendant_status_service.average_load(db, 2) == 0.0


def test_mark_inactive_offline_after_missed_heartbeats(db, make_company, make_attendant, now):
    make_company(1)
    make_attendant(1, 1, last_activity_at=now - timedelta(minutes=15))
    make_attendant(2, 1, last_activity_at=now - timedelta(minutes=2))
    make_attendant(3, 1, status="offline", last_activity_at=now - timedelta(hours=3))

    changed = attendant_status_service.mark_inactive_offline(db, 1, inactivity_minutes=10, now=now)

    assert changed == 1
    assert attendant_status_service.get_status(db, 1, 1).status == "offline"
    assert attendant_status_service.get_status(db, 2, 1).status == "available"


def test_max_chats_column_default_follows_settings():
    from app.core.config import settings

    column = AttendantStatus.__table__.c.max_chats
    assert column.default.arg == settings.DEFAULT_MAX_CHATS
    assert column.server_default.arg == str(settings.DEFAULT_MAX_CHATS)

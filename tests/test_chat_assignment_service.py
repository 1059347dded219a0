from datetime import timedelta

from app.models.chat_assignment import ChatAssignment
from app.services import attendant_status_service, chat_assignment_service, chat_distribution_service, chat_window_service


def test_get_or_create_creates_unassigned_record(db, make_company, now):
    make_company(1)

    assignment = chat_assignment_service.get_or_create(db, "chat-1", 1, now - timedelta(minutes=1), now=now)

    assert assignment.status == "unassigned"
    assert assignment.assigned_to is None
    assert assignment.last_customer_message_at == now - timedelta(minutes=1)
    assert assignment.window_expires_at == now - timedelta(minutes=1) + timedelta(hours=24)


def test_get_or_create_is_idempotent(db, make_company, now):
    make_company(1)

    first = chat_assignment_service.get_or_create(db, "chat-1", 1, now, now=now)
    for offset in range(1, 4):
        again = chat_assignment_service.get_or_create(db, "chat-1", 1, now + timedelta(hours=offset), now=now)
        assert again.id == first.id
        # A lookup never overwrites timestamps
        assert again.last_customer_message_at == now

    assert db.query(ChatAssignment).filter(ChatAssignment.chat_id == "chat-1").count() == 1


def test_get_or_create_hides_other_company_chat(db, make_company, now):
    make_company(1)
    make_company(2)
    chat_assignment_service.get_or_create(db, "chat-1", 1, now, now=now)

    assert chat_assignment_service.get_or_create(db, "chat-1", 2, now, now=now) is None
    assert chat_assignment_service.get_by_chat_id(db, "chat-1", company_id=2) is None


def test_assign_only_from_queue(db, make_company, make_assignment, now):
    make_company(1)
    make_assignment("chat-1", 1)

    assert chat_assignment_service.assign(db, "chat-1", 5, now=now) is True
    assert chat_assignment_service.assign(db, "chat-1", 6, now=now) is False

    assignment = chat_assignment_service.get_by_chat_id(db, "chat-1")
    assert assignment.assigned_to == 5
    assert assignment.status == "assigned"
    assert assignment.assigned_at == now


def test_assign_with_expected_assignee(db, make_company, make_assignment, now):
    make_company(1)
    make_assignment("chat-1", 1, status="active", assigned_to=5, assigned_at=now)

    assert chat_assignment_service.assign(db, "chat-1", 6, expected_assignee=4, now=now) is False
    assert chat_assignment_service.assign(db, "chat-1", 6, expected_assignee=5, now=now) is True
    assert chat_assignment_service.get_by_chat_id(db, "chat-1").assigned_to == 6


def test_attendant_reply_activates_without_moving_window(db, make_company, make_assignment, now):
    make_company(1)
    make_assignment("chat-1", 1, status="assigned", assigned_to=5, assigned_at=now, last_customer_message_at=now)
    window = chat_window_service.window_expiry(now)

    assignment = chat_assignment_service.record_activity(db, "chat-1", from_customer=False, timestamp=now + timedelta(hours=1), now=now + timedelta(hours=1))

    assert assignment.status == "active"
    assert assignment.last_attendant_message_at == now + timedelta(hours=1)
    assert assignment.window_expires_at == window


def test_customer_message_extends_window_monotonically(db, make_company, make_assignment, now):
    make_company(1)
    make_assignment("chat-1", 1, status="active", assigned_to=5, last_customer_message_at=now)

    later = chat_assignment_service.record_activity(db, "chat-1", from_customer=True, timestamp=now + timedelta(hours=3), now=now + timedelta(hours=3))
    assert later.window_expires_at == now + timedelta(hours=27)

    # A redelivered older message must not pull the window back
    redelivered = chat_assignment_service.record_activity(db, "chat-1", from_customer=True, timestamp=now + timedelta(hours=1), now=now + timedelta(hours=3))
    assert redelivered.window_expires_at == now + timedelta(hours=27)
    assert redelivered.last_customer_message_at == now + timedelta(hours=3)


def test_customer_reengagement_reopens_expired_chat(db, make_company, make_assignment, now):
    make_company(1)
    make_assignment("chat-1", 1, status="expired", assigned_to=5, last_customer_message_at=now - timedelta(hours=30))

    assignment = chat_assignment_service.record_activity(db, "chat-1", from_customer=True, timestamp=now, now=now)

    assert assignment.status == "active"
    assert assignment.assigned_to == 5
    assert assignment.window_expires_at == now + timedelta(hours=24)
    assert chat_window_service.is_within_window(assignment, now) is True


def test_customer_message_requeues_resolved_chat(db, make_company, make_assignment, now):
    make_company(1)
    make_assignment("chat-1", 1, status="resolved", assigned_to=5, last_customer_message_at=now - timedelta(hours=2))

    assignment = chat_assignment_service.record_activity(db, "chat-1", from_customer=True, timestamp=now, now=now)

    assert assignment.status == "unassigned"
    assert assignment.assigned_to is None


def test_record_activity_unknown_chat(db):
    assert chat_assignment_service.record_activity(db, "missing", from_customer=True) is None


def test_listing(db, make_company, make_assignment, now):
    make_company(1)
    make_company(2)
    make_assignment("a", 1, status="assigned", assigned_to=5, assigned_at=now)
    make_assignment("b", 1, status="active", assigned_to=5, assigned_at=now)
    make_assignment("c", 1, status="resolved", assigned_to=5)
    make_assignment("d", 1, last_customer_message_at=now - timedelta(minutes=5))
    make_assignment("e", 1, status="assigned", last_customer_message_at=now - timedelta(minutes=10))
    make_assignment("f", 2)

    assert {a.chat_id for a in chat_assignment_service.list_by_attendant(db, 5, 1)} == {"a", "b"}
    assert [a.chat_id for a in chat_assignment_service.list_unassigned(db, 1)] == ["e", "d"]
    assert chat_assignment_service.count_by_status(db, 1) == {
        "unassigned": 1,
        "assigned": 2,
        "active": 1,
        "resolved": 1,
        "expired": 0,
    }


def test_mark_expired_flags_lapsed_window(db, make_company, make_assignment, now):
    make_company(1)
    make_assignment("old", 1, status="assigned", assigned_to=5, assigned_at=now - timedelta(hours=25),
                    last_customer_message_at=now - timedelta(hours=25))
    make_assignment("fresh", 1, status="active", assigned_to=5, last_customer_message_at=now - timedelta(hours=1))
    make_assignment("done", 1, status="resolved", assigned_to=5, last_customer_message_at=now - timedelta(hours=40))

    assert chat_assignment_service.mark_expired(db, 1, now=now) == 1

    old = chat_assignment_service.get_by_chat_id(db, "old")
    assert old.status == "expired"
    # Expiry is not a workload event
    assert old.assigned_to == 5
    assert chat_window_service.is_within_window(old, now) is False
    assert chat_assignment_service.get_by_chat_id(db, "done").status == "resolved"
    # Idempotent
    assert chat_assignment_service.mark_expired(db, 1, now=now) == 0


def test_resolve_releases_load_once(db, make_company, make_attendant, make_assignment, now):
    make_company(1)
    make_attendant(5, 1, active_chats=2)
    make_assignment("chat-1", 1, status="active", assigned_to=5, assigned_at=now)

    assert chat_assignment_service.resolve(db, "chat-1", company_id=1, now=now).status == "resolved"
    chat_assignment_service.resolve(db, "chat-1", company_id=1, now=now)

    assert attendant_status_service.get_status(db, 5, 1).active_chats == 1


def test_release_puts_chat_back_in_queue(db, make_company, make_attendant, make_assignment, now):
    make_company(1)
    make_attendant(5, 1, active_chats=1)
    make_assignment("chat-1", 1, status="assigned", assigned_to=5, assigned_at=now)

    released = chat_assignment_service.release(db, "chat-1", company_id=1, now=now)

    assert released.status == "unassigned"
    assert released.assigned_to is None
    assert attendant_status_service.get_status(db, 5, 1).active_chats == 0
    assert [a.chat_id for a in chat_assignment_service.list_unassigned(db, 1)] == ["chat-1"]


def test_reassign_stale_moves_chat_and_load(db, make_company, make_attendant, make_assignment, now):
    make_company(1)
    make_attendant(1, 1, active_chats=1)
    make_attendant(2, 1, active_chats=0)
    make_assignment(
        "chat-1", 1, status="active", assigned_to=1, assigned_at=now - timedelta(hours=30),
        last_customer_message_at=now - timedelta(hours=2),
        last_attendant_message_at=now - timedelta(hours=26),
    )

    assert chat_assignment_service.reassign_stale(db, 1, stale_hours=24, now=now) == 1

    assignment = chat_assignment_service.get_by_chat_id(db, "chat-1")
    assert assignment.assigned_to == 2
    assert assignment.status == "assigned"
    assert assignment.assigned_at == now
    assert attendant_status_service.get_status(db, 1, 1).active_chats == 0
    assert attendant_status_service.get_status(db, 2, 1).active_chats == 1


def test_reassign_stale_without_alternative_leaves_chat(db, make_company, make_attendant, make_assignment, now):
    make_company(1)
    make_attendant(1, 1, active_chats=1)
    make_attendant(2, 1, status="offline")
    make_assignment(
        "chat-1", 1, status="active", assigned_to=1, assigned_at=now - timedelta(hours=30),
        last_customer_message_at=now - timedelta(hours=2),
        last_attendant_message_at=now - timedelta(hours=26),
    )

    assert chat_assignment_service.reassign_stale(db, 1, stale_hours=24, now=now) == 0
    assert chat_assignment_service.get_by_chat_id(db, "chat-1").assigned_to == 1
    assert attendant_status_service.get_status(db, 1, 1).active_chats == 1


def test_reassign_stale_skips_answered_and_expired_chats(db, make_company, make_attendant, make_assignment, now):
    make_company(1)
    make_attendant(1, 1, active_chats=2)
    make_attendant(2, 1)
    make_assignment(
        "answered", 1, status="active", assigned_to=1, assigned_at=now - timedelta(hours=40),
        last_customer_message_at=now - timedelta(hours=30),
        last_attendant_message_at=now - timedelta(hours=29),
    )
    make_assignment(
        "expired", 1, status="expired", assigned_to=1, assigned_at=now - timedelta(hours=40),
        last_customer_message_at=now - timedelta(hours=30),
    )

    assert chat_assignment_service.reassign_stale(db, 1, stale_hours=24, now=now) == 0
    assert attendant_status_service.get_status(db, 2, 1).active_chats == 0


def test_reassigned_chat_is_not_moved_again_on_next_sweep(db, make_company, make_attendant, make_assignment, now):
    make_company(1)
    make_attendant(1, 1, active_chats=1)
    make_attendant(2, 1)
    make_attendant(3, 1)
    make_assignment(
        "chat-1", 1, status="active", assigned_to=1, assigned_at=now - timedelta(hours=30),
        last_customer_message_at=now - timedelta(hours=2),
        last_attendant_message_at=now - timedelta(hours=26),
    )

    assert chat_assignment_service.reassign_stale(db, 1, stale_hours=24, now=now) == 1
    assert chat_assignment_service.get_by_chat_id(db, "chat-1").assigned_to == 2

    # The old reply belongs to the previous attendant; the new one gets a full threshold
    assert chat_assignment_service.reassign_stale(db, 1, stale_hours=24, now=now + timedelta(minutes=30)) == 0
    assert chat_assignment_service.get_by_chat_id(db, "chat-1").assigned_to == 2
    assert [attendant_status_service.get_status(db, uid, 1).active_chats for uid in (1, 2, 3)] == [0, 1, 0]


def test_redistributed_chat_is_not_immediately_stale(db, make_company, make_attendant, make_assignment, now):
    make_company(1)
    make_attendant(1, 1, active_chats=1)
    make_attendant(2, 1)
    make_assignment(
        "chat-1", 1, status="active", assigned_to=1, assigned_at=now - timedelta(hours=30),
        last_customer_message_at=now - timedelta(hours=2),
        last_attendant_message_at=now - timedelta(hours=26),
    )

    chat_assignment_service.release(db, "chat-1", company_id=1, now=now)
    attendant_status_service.set_status(db, 1, 1, "away", now=now)
    assert chat_distribution_service.distribute_chat(db, "chat-1", 1, now=now) == 2

    assert chat_assignment_service.reassign_stale(db, 1, stale_hours=24, now=now + timedelta(minutes=1)) == 0
    assert chat_assignment_service.get_by_chat_id(db, "chat-1").assigned_to == 2

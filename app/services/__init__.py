from app.services.attendant_status_service import (
    get_status,
    set_status,
    set_max_chats,
    record_heartbeat,
    increment_load
)
from app.services.chat_assignment_service import (
    get_or_create,
    get_by_chat_id,
    assign,
    record_activity,
    mark_expired,
    reassign_stale
)
from app.services.chat_distribution_service import (
    distribute_chat,
    handle_inbound_message,
    distribute_queued
)
from app.services.reconciliation_service import run_sweep

import pytest

from services.operation_log import OperationLog
from storage.db import init_db, make_engine, make_session_factory


def test_append_lists_pending_in_creation_order(op_log):
    first = op_log.append("customers", "create", {"name": "A"}, record_id="local-1")
    second = op_log.append("customers", "update", {"id": 1, "city": "Pune"}, record_id=1)
    third = op_log.append("loans", "delete", {"id": "L1"}, record_id="L1")

    entries = op_log.list_pending()

    assert [e.id for e in entries] == [first, second, third]
    assert entries[1].record_id == "1"
    assert entries[1].payload == {"id": 1, "city": "Pune"}
    assert all(e.status == "pending" and e.attempts == 0 for e in entries)
    assert op_log.count() == 3


def test_remove_and_record_failure(op_log):
    keep = op_log.append("emis", "update", {"id": 2, "status": "paid"}, record_id=2)
    drop = op_log.append("emis", "delete", {"id": 3}, record_id=3)

    op_log.record_failure(keep, "timeout " * 500)
    op_log.remove(drop)
    op_log.remove(drop)
    op_log.record_failure(drop, "ignored")

    [entry] = op_log.list_pending()
    assert entry.id == keep
    assert entry.attempts == 1
    assert len(entry.last_error) == 1000


def test_unknown_kind_is_rejected(op_log):
    with pytest.raises(ValueError):
        op_log.append("customers", "upsert", {})
    assert op_log.count() == 0


def test_entries_survive_a_restart(tmp_path):
    path = tmp_path / "durable.db"
    engine = make_engine(path)
    init_db(engine, backup=False)
    OperationLog(make_session_factory(engine)).append("customers", "create", {"name": "Kept"})
    OperationLog(make_session_factory(engine)).append_message(
        "919876543210", "hello", category="manual", priority="low"
    )
    engine.dispose()

    reopened = make_engine(path)
    init_db(reopened, backup=False)
    log = OperationLog(make_session_factory(reopened))
    try:
        [entry] = log.list_pending()
        assert entry.payload == {"name": "Kept"}
        [message] = log.list_messages(status="pending")
        assert message.body == "hello"
    finally:
        reopened.dispose()


def test_messages_filter_by_category_and_status(op_log):
    welcome = op_log.append_message("919999999999", "hi", category="welcome", priority="high")
    reminder = op_log.append_message("918888888888", "pay", category="emi_reminder", priority="normal")
    op_log.append_message("917777777777", "late", category="emi_overdue", priority="high")

    reminder.status = "sent"
    reminder.provider_message_id = "wamid-1"
    op_log.update_message(reminder)
    welcome.status = "failed"
    welcome.attempts = 3
    welcome.last_error = "rejected"
    op_log.update_message(welcome)

    assert [m.category for m in op_log.list_messages(status="pending")] == ["emi_overdue"]
    [stored] = op_log.list_messages(category="emi_reminder")
    assert stored.status == "sent"
    assert stored.provider_message_id == "wamid-1"
    assert op_log.list_messages(category="welcome", status="failed")[0].attempts == 3
    assert op_log.message_stats() == {"pending": 1, "sent": 1, "failed": 1, "total": 3}

    with pytest.raises(ValueError):
        op_log.list_messages(status="queued")


def test_transaction_rolls_back_every_write(op_log, local_store):
    with pytest.raises(RuntimeError):
        with op_log.transaction() as session:
            local_store.put("customers", {"id": 9, "name": "Draft"}, session=session)
            op_log.append("customers", "create", {"id": 9}, record_id=9, session=session)
            raise RuntimeError("abort")

    assert op_log.count() == 0
    assert local_store.get("customers", 9) is None

    with op_log.transaction() as session:
        local_store.put("customers", {"id": 9, "name": "Saved"}, session=session)
        op_id = op_log.append("customers", "create", {"id": 9}, record_id=9, session=session)

    assert [e.id for e in op_log.list_pending()] == [op_id]
    assert local_store.get("customers", 9)["name"] == "Saved"

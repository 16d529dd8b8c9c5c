import pytest

from models.pending_op import OperationType, PendingOperation
from services.errors import StorageError
from services.operation_log import OperationLog
from storage.store import CollectionStore


def _op(entity="task", op_type=OperationType.CREATE, payload=None):
    return PendingOperation(entity_type=entity, operation_type=op_type, payload=payload or {"title": "x"})


def test_append_and_list_preserve_insertion_order(store):
    log = OperationLog(store)
    ops = [_op("task"), _op("project"), _op("member")]
    for op in ops:
        log.append(op)

    listed = log.list()
    assert [op.id for op in listed] == [op.id for op in ops]
    assert [op.entity_type for op in listed] == ["task", "project", "member"]
    assert log.count() == 3


def test_list_survives_a_new_log_instance(store):
    OperationLog(store).append(_op(payload={"title": "persisted"}))

    reopened = OperationLog(store).list()
    assert len(reopened) == 1
    assert reopened[0].payload == {"title": "persisted"}
    assert reopened[0].retry_count == 0


def test_remove_keeps_the_rest_in_order(store):
    log = OperationLog(store)
    a, b, c = _op(), _op(), _op()
    for op in (a, b, c):
        log.append(op)

    assert log.remove([b.id, "unknown"]) == 1
    assert [op.id for op in log.list()] == [a.id, c.id]
    assert log.remove([]) == 0


def test_save_retries_keeps_entries_appended_meanwhile(store):
    log = OperationLog(store)
    first = _op()
    log.append(first)
    snapshot = log.list()

    late = _op(entity="project")
    log.append(late)

    snapshot[0].retry_count = 2
    snapshot[0].last_error = "boom"
    log.save_retries(snapshot)

    listed = log.list()
    assert [op.id for op in listed] == [first.id, late.id]
    assert listed[0].retry_count == 2
    assert listed[0].last_error == "boom"
    assert listed[1].retry_count == 0


def test_clear_empties_the_log(store):
    log = OperationLog(store)
    log.append(_op())
    log.clear()
    assert log.list() == []
    assert log.count() == 0


class BrokenStore(CollectionStore):
    def _read_raw(self, key):
        return None

    def _write_raw(self, key, text):
        raise StorageError("disk full")

    def _delete_raw(self, key):
        pass


def test_append_propagates_persistence_failure():
    log = OperationLog(BrokenStore())
    with pytest.raises(StorageError, match="disk full"):
        log.append(_op())


def test_record_failure_caps_retry_count():
    op = _op()
    results = [op.record_failure(RuntimeError("nope"), max_retries=3) for _ in range(5)]
    assert results == [True, True, False, False, False]
    assert op.retry_count == 3
    assert op.last_error == "nope"


def test_legacy_operation_document_is_readable():
    op = PendingOperation.from_dict(
        {
            "id": "1700000000000-abc",
            "entityType": "task",
            "operationType": "delete",
            "data": {"id": "T1"},
            "timestamp": 1700000000000,
            "retryCount": 2,
        }
    )
    assert op.operation_type is OperationType.DELETE
    assert op.payload == {"id": "T1"}
    assert op.retry_count == 2
    assert op.created_at.year == 2023


def test_append_rejects_unserialisable_payload(store):
    log = OperationLog(store)
    log.append(_op())

    with pytest.raises(StorageError):
        log.append(_op(payload={"when": object()}))
    assert log.count() == 1

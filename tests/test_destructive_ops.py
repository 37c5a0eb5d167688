import asyncio

import pytest

from core_fakes import CoreError, StubPicker, backup_manifest, sanitized_manifest
from runtime_bus import topics
from session_center.destructive_ops import (
    DestructiveOperationProtocol,
    PendingDestructiveOperation,
    inspect_failed,
    inspect_started,
    inspect_succeeded,
    select_source,
    set_acknowledgement,
)
from session_center.errors import (
    DESTRUCTIVE_COMMIT_IN_FLIGHT,
    DESTRUCTIVE_NO_SOURCE,
    DESTRUCTIVE_NOT_INSPECTED,
    DESTRUCTIVE_STALE_SOURCE,
    RESTORE_CONFIRMATION_REQUIRED,
    CommandError,
    PreconditionError,
)

RESTORE_RESULT = {"ok": True, "restored_db_path": "/data/a/incidentreview.sqlite", "restored_artifacts": False}


@pytest.fixture()
def restore(core, gateway, store):
    core.responses[topics.BACKUP_INSPECT] = backup_manifest()
    core.responses[topics.RESTORE_FROM_BACKUP] = RESTORE_RESULT
    return DestructiveOperationProtocol("restore", gateway, store, StubPicker(directory="/backups/one"))


@pytest.fixture()
def sanitized_import(core, gateway, store):
    core.responses[topics.INSPECT_SANITIZED_DATASET] = sanitized_manifest()
    core.responses[topics.IMPORT_SANITIZED_DATASET] = {
        "inserted_incidents": 2,
        "inserted_timeline_events": 7,
        "import_warnings": [],
    }
    return DestructiveOperationProtocol("sanitized_import", gateway, store, StubPicker(directory="/exports/one"))


def test_pure_transitions():
    op = select_source("restore", "/b1")
    assert op == PendingDestructiveOperation(kind="restore", source_location="/b1")
    with pytest.raises(PreconditionError):
        set_acknowledgement(op, True)
    inspected = inspect_succeeded(op, "/b1", "manifest")
    assert inspected.inspected_manifest == "manifest"
    assert inspect_succeeded(op, "/b2", "manifest") is op
    assert inspect_failed(inspected, "/b1") is None
    assert inspect_failed(inspected, "/b2") is inspected
    assert inspect_started(inspected, "/b1").inspected_manifest is None
    assert inspect_started(inspected, "/b2") is inspected
    assert set_acknowledgement(inspected, True).user_confirmed_overwrite is True


def test_choose_source_inspects_without_side_effects(core, restore):
    op = asyncio.run(restore.choose_source())
    assert op.source_location == "/backups/one"
    assert op.inspected_manifest.counts.incidents == 3
    assert op.user_confirmed_overwrite is False
    assert core.commands() == [topics.BACKUP_INSPECT]
    assert core.payloads(topics.BACKUP_INSPECT) == [{"backup_dir": "/backups/one"}]


def test_picker_cancel_keeps_current_selection(core, gateway, store):
    core.responses[topics.BACKUP_INSPECT] = backup_manifest()
    protocol = DestructiveOperationProtocol("restore", gateway, store, StubPicker(directory=None))
    asyncio.run(protocol.choose_source("/backups/one"))
    before = protocol.pending
    assert asyncio.run(protocol.choose_source()) == before
    assert core.commands() == [topics.BACKUP_INSPECT]


def test_new_source_clears_acknowledgement(restore):
    asyncio.run(restore.choose_source("/backups/one"))
    restore.acknowledge(True)
    assert restore.pending.user_confirmed_overwrite

    asyncio.run(restore.choose_source("/backups/two"))
    assert restore.pending.source_location == "/backups/two"
    assert restore.pending.user_confirmed_overwrite is False


def test_restore_requires_separate_acknowledgement(core, restore):
    asyncio.run(restore.choose_source("/backups/one"))
    with pytest.raises(PreconditionError) as excinfo:
        asyncio.run(restore.commit())
    assert excinfo.value.code == RESTORE_CONFIRMATION_REQUIRED
    assert topics.RESTORE_FROM_BACKUP not in core.commands()


def test_restore_commit_sends_overwrite_flag_and_reloads(core, gateway, store):
    core.responses[topics.BACKUP_INSPECT] = backup_manifest()
    core.responses[topics.RESTORE_FROM_BACKUP] = RESTORE_RESULT
    reloads = []

    async def reload():
        reloads.append("reload")

    protocol = DestructiveOperationProtocol("restore", gateway, store, StubPicker(), reload=reload)
    asyncio.run(protocol.choose_source("/backups/one"))
    protocol.acknowledge(True)

    result = asyncio.run(protocol.commit(expected_source="/backups/one"))

    assert result.ok is True
    assert core.payloads(topics.RESTORE_FROM_BACKUP) == [{"backup_dir": "/backups/one", "allow_overwrite": True}]
    assert store.views.restore_result == result
    assert reloads == ["reload"]


def test_stale_source_rejected_before_any_request(core, restore):
    asyncio.run(restore.choose_source("/backups/one"))
    restore.acknowledge(True)
    asyncio.run(restore.choose_source("/backups/two"))
    restore.acknowledge(True)
    calls_before = list(core.calls)

    with pytest.raises(PreconditionError) as excinfo:
        asyncio.run(restore.commit(expected_source="/backups/one"))

    assert excinfo.value.code == DESTRUCTIVE_STALE_SOURCE
    assert core.calls == calls_before


def test_commit_without_source_or_inspection_is_rejected(core, store, restore):
    with pytest.raises(PreconditionError) as excinfo:
        asyncio.run(restore.commit())
    assert excinfo.value.code == DESTRUCTIVE_NO_SOURCE

    store.update_views(restore_pending=select_source("restore", "/backups/one"))
    with pytest.raises(PreconditionError) as excinfo:
        asyncio.run(restore.commit())
    assert excinfo.value.code == DESTRUCTIVE_NOT_INSPECTED
    assert core.calls == []


def test_acknowledgement_survives_commit_failure(core, restore):
    core.responses[topics.RESTORE_FROM_BACKUP] = CoreError("RESTORE_FAILED", "disk full")
    asyncio.run(restore.choose_source("/backups/one"))
    restore.acknowledge(True)

    with pytest.raises(CommandError) as excinfo:
        asyncio.run(restore.commit())

    assert excinfo.value.code == "RESTORE_FAILED"
    assert restore.pending.user_confirmed_overwrite is True
    assert restore.pending.inspected_manifest is not None
    assert restore.committing is False


def test_inspect_is_idempotent(core, restore):
    asyncio.run(restore.choose_source("/backups/one"))
    restore.acknowledge(True)
    first = restore.pending
    asyncio.run(restore.inspect())
    asyncio.run(restore.inspect())
    assert restore.pending == first
    assert core.commands() == [topics.BACKUP_INSPECT] * 3


def test_inspect_failure_clears_selection(core, restore):
    core.responses[topics.BACKUP_INSPECT] = CoreError("BACKUP_MANIFEST_INVALID", "bad manifest")
    with pytest.raises(CommandError):
        asyncio.run(restore.choose_source("/backups/broken"))
    assert restore.pending is None


def test_inspect_result_for_replaced_source_is_discarded(core, gateway, store):
    protocol = DestructiveOperationProtocol("restore", gateway, store, StubPicker())

    def inspect_handler(payload):
        # The user picks another folder while the first inspect is in flight.
        store.update_views(restore_pending=select_source("restore", "/backups/two"))
        return backup_manifest()

    core.responses[topics.BACKUP_INSPECT] = inspect_handler
    asyncio.run(protocol.choose_source("/backups/one"))

    assert protocol.pending.source_location == "/backups/two"
    assert protocol.pending.inspected_manifest is None


def test_concurrent_commit_is_rejected(core, gateway, store, bus):
    core.responses[topics.BACKUP_INSPECT] = backup_manifest()
    protocol = DestructiveOperationProtocol("restore", gateway, store, StubPicker())

    async def scenario():
        await protocol.choose_source("/backups/one")
        protocol.acknowledge(True)
        release = asyncio.Event()

        async def slow_restore(envelope):
            await release.wait()
            return RESTORE_RESULT

        bus.register_handler(topics.RESTORE_FROM_BACKUP, slow_restore)
        first = asyncio.create_task(protocol.commit())
        await asyncio.sleep(0)
        with pytest.raises(PreconditionError) as excinfo:
            await protocol.commit()
        release.set()
        await first
        return excinfo.value.code

    assert asyncio.run(scenario()) == DESTRUCTIVE_COMMIT_IN_FLIGHT


def test_sanitized_import_needs_no_acknowledgement(core, store, sanitized_import):
    asyncio.run(sanitized_import.choose_source())
    summary = asyncio.run(sanitized_import.commit())
    assert summary.inserted_incidents == 2
    assert core.payloads(topics.INSPECT_SANITIZED_DATASET) == [{"dataset_dir": "/exports/one"}]
    assert core.payloads(topics.IMPORT_SANITIZED_DATASET) == [{"dataset_dir": "/exports/one"}]
    assert store.views.sanitized_import_summary == summary


def test_non_empty_workspace_rejection_surfaces_core_code(core, sanitized_import):
    core.responses[topics.IMPORT_SANITIZED_DATASET] = CoreError("INGEST_SANITIZED_DB_NOT_EMPTY", "not empty")
    asyncio.run(sanitized_import.choose_source())
    with pytest.raises(CommandError) as excinfo:
        asyncio.run(sanitized_import.commit())
    assert excinfo.value.code == "INGEST_SANITIZED_DB_NOT_EMPTY"
    assert sanitized_import.pending.inspected_manifest is not None


def test_workspace_switch_clears_pending_operation(store, restore):
    asyncio.run(restore.choose_source("/backups/one"))
    store.clear_views()
    assert restore.pending is None


def test_commit_waits_for_running_reinspect(core, gateway, store, bus):
    core.responses[topics.BACKUP_INSPECT] = backup_manifest()
    core.responses[topics.RESTORE_FROM_BACKUP] = RESTORE_RESULT
    protocol = DestructiveOperationProtocol("restore", gateway, store, StubPicker())

    async def scenario():
        await protocol.choose_source("/backups/one")
        protocol.acknowledge(True)
        entered = asyncio.Event()
        release = asyncio.Event()

        async def slow_inspect(envelope):
            entered.set()
            await release.wait()
            return backup_manifest(incidents=5)

        bus.register_handler(topics.BACKUP_INSPECT, slow_inspect)
        reinspect = asyncio.create_task(protocol.inspect())
        await entered.wait()
        with pytest.raises(PreconditionError) as excinfo:
            await protocol.commit(expected_source="/backups/one")
        release.set()
        await reinspect
        return excinfo.value.code

    assert asyncio.run(scenario()) == DESTRUCTIVE_NOT_INSPECTED
    assert topics.RESTORE_FROM_BACKUP not in core.commands()
    assert protocol.pending.inspected_manifest.counts.incidents == 5
    assert protocol.pending.user_confirmed_overwrite is True

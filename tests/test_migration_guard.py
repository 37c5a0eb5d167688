import asyncio

import pytest

from core_fakes import CoreError, migration_status
from runtime_bus import topics
from session_center.errors import CommandError, SchemaViolation
from session_center.migration_guard import (
    CLEAR,
    GuardClear,
    GuardSuspended,
    on_backup_first,
    on_cancel,
    on_preflight_result,
    on_proceed,
)
from session_center.schemas import MigrationStatus


def _suspended():
    return GuardSuspended(
        pending_action="open_or_switch",
        target_path="/db",
        latest_known_migration="0004",
        pending_migrations=("0005", "0006"),
        mode="open",
    )


def test_empty_pending_list_never_suspends_even_with_unknown_latest():
    status = MigrationStatus(latest_migration="", pending_migrations=[])
    assert on_preflight_result(CLEAR, action="open_or_switch", target_path="/db", status=status) == CLEAR


def test_pending_migrations_are_kept_verbatim():
    status = MigrationStatus(latest_migration="0004_add_ai_drafts", pending_migrations=["0006_b", "0005_a"])
    state = on_preflight_result(CLEAR, action="initialize", target_path="/db", status=status)
    assert isinstance(state, GuardSuspended)
    assert state.pending_migrations == ("0006_b", "0005_a")
    assert state.latest_known_migration == "0004_add_ai_drafts"
    assert state.pending_action == "initialize"


def test_user_transitions():
    suspended = _suspended()
    assert on_cancel(suspended) == CLEAR
    assert on_proceed(suspended) == CLEAR
    assert on_backup_first(suspended) is suspended


def test_preflight_clear_when_nothing_pending(core, guard):
    state = asyncio.run(guard.preflight("open_or_switch", "/db"))
    assert isinstance(state, GuardClear)
    assert core.payloads(topics.WORKSPACE_MIGRATION_STATUS) == [{"db_path": "/db"}]


def test_preflight_suspends_and_records_in_store(core, guard, store):
    core.responses[topics.WORKSPACE_MIGRATION_STATUS] = migration_status(pending=("0006",), latest="0005")
    state = asyncio.run(guard.preflight("open_or_switch", "/db", "open"))
    assert isinstance(state, GuardSuspended)
    assert store.guard == state
    assert state.mode == "open"


def test_missing_database_lets_initialize_proceed(core, guard):
    core.responses[topics.WORKSPACE_MIGRATION_STATUS] = CoreError("WORKSPACE_DB_NOT_FOUND", "no db")
    assert isinstance(asyncio.run(guard.preflight("initialize", "/new.sqlite")), GuardClear)


@pytest.mark.parametrize(
    "response, error_type",
    [
        (CoreError("WORKSPACE_DB_LOCKED", "locked"), CommandError),
        ({"latest_migration": 5}, SchemaViolation),
        (RuntimeError("boom"), CommandError),
    ],
)
def test_preflight_failures_block_the_action(core, guard, store, response, error_type):
    core.responses[topics.WORKSPACE_MIGRATION_STATUS] = response
    with pytest.raises(error_type):
        asyncio.run(guard.preflight("open_or_switch", "/db"))
    assert store.guard == CLEAR


def test_preflight_while_suspended_is_coalesced(core, guard, store):
    store.set_guard(_suspended())
    state = asyncio.run(guard.preflight("initialize", "/other"))
    assert state == _suspended()
    assert core.payloads(topics.WORKSPACE_MIGRATION_STATUS) == []


def test_take_for_proceed_is_single_shot(guard, store):
    store.set_guard(_suspended())
    assert guard.take_for_proceed() == _suspended()
    assert store.guard == CLEAR
    assert guard.take_for_proceed() is None


def test_backup_first_leaves_prompt_in_place(guard, store):
    store.set_guard(_suspended())
    guard.backup_first()
    assert store.guard == _suspended()
    guard.cancel()
    assert store.guard == CLEAR

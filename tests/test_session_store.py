import asyncio

import pytest

from diagnostics import tracing
from session_center.migration_guard import CLEAR, GuardSuspended
from session_center.session_store import (
    CHANGE_GUARD,
    CHANGE_SESSION,
    CHANGE_VIEWS,
    SessionStore,
    WorkspaceSession,
)
from session_center.steps import Step, StepOutcome, StepPlan
from session_center.views import WorkspaceScopedViewState


def test_recent_paths_are_deduplicated_in_order():
    session = WorkspaceSession(current_path="/b", recent_paths=("/b", "", "/a", "/b"))
    assert session.recent_paths == ("/b", "/a")


def test_session_requires_a_path():
    with pytest.raises(ValueError):
        SessionStore().set_session(WorkspaceSession(current_path=""))


def test_listeners_receive_change_kinds():
    store = SessionStore()
    seen = []
    token = store.add_listener(seen.append)

    store.set_session(WorkspaceSession(current_path="/a"))
    store.set_guard(GuardSuspended("initialize", "/a", "0001", ("0002",)))
    store.set_guard(GuardSuspended("initialize", "/a", "0001", ("0002",)))
    store.update_views(report_md="# r")
    store.remove_listener(token)
    store.set_guard(CLEAR)

    assert seen == [CHANGE_SESSION, CHANGE_GUARD, CHANGE_VIEWS]


def test_failing_listener_does_not_block_others():
    store = SessionStore()
    seen = []

    def broken(kind):
        raise RuntimeError("listener bug")

    store.add_listener(broken)
    store.add_listener(seen.append)
    store.clear_views()
    assert seen == [CHANGE_VIEWS]


def test_clear_views_bumps_generation_and_drops_stale_updates():
    store = SessionStore()
    store.update_views(report_md="# old")
    gen = store.view_generation
    assert store.clear_views() == gen + 1
    assert store.views.is_empty()
    assert store.update_views(generation=gen, report_md="# stale") is False
    assert store.views.report_md is None
    assert store.update_views(generation=gen + 1, report_md="# fresh") is True
    assert store.views.report_md == "# fresh"


def test_view_state_is_replaced_not_mutated():
    store = SessionStore()
    before = store.views
    store.update_views(report_md="# r")
    assert before == WorkspaceScopedViewState.empty()
    assert store.views is not before


def _recording_step(name, log, outcome=None):
    async def run(ctx):
        log.append(name)
        return outcome

    return Step(name, run)


def test_plan_runs_steps_in_order():
    log = []
    hooks = []
    plan = StepPlan(
        "demo",
        [_recording_step("a", log), _recording_step("b", log)],
        on_step=lambda name, ctx: hooks.append(name),
    )
    result = asyncio.run(plan.run())
    assert result.outcome is StepOutcome.COMPLETED
    assert result.completed_steps == ["a", "b"]
    assert log == hooks == ["a", "b"]
    assert plan.step_names == ["a", "b"]


def test_plan_halts_on_outcome():
    log = []
    plan = StepPlan(
        "demo",
        [_recording_step("a", log), _recording_step("b", log, StepOutcome.CANCELLED), _recording_step("c", log)],
    )
    result = asyncio.run(plan.run({"x": 1}))
    assert result.outcome is StepOutcome.CANCELLED
    assert result.halted_at == "b"
    assert result.completed_steps == ["a"]
    assert result.context == {"x": 1}
    assert log == ["a", "b"]


def test_plan_rejects_duplicate_step_names():
    with pytest.raises(ValueError):
        StepPlan("demo", [_recording_step("a", []), _recording_step("a", [])])


def test_step_exception_propagates_and_is_traced():
    tracing.clear_spans()

    async def boom(ctx):
        raise RuntimeError("step failed")

    plan = StepPlan("demo", [Step("boom", boom)])
    with pytest.raises(RuntimeError):
        asyncio.run(plan.run())
    spans = [sp for sp in tracing.get_recent_spans() if sp["name"] == "plan.demo"]
    assert spans[-1]["status"] == "error"
    assert spans[-1]["attrs"]["failed_step"] == "boom"

import asyncio
import json

import pytest

from core_fakes import CoreError, workspace_info
from diagnostics import tracing
from runtime_bus import RuntimeBus, topics
from session_center.errors import (
    CLIENT_SCHEMA_VIOLATION,
    TRANSPORT_NO_HANDLER,
    TRANSPORT_TIMEOUT,
    UNKNOWN_ERROR,
    CommandError,
    SchemaViolation,
    TransportError,
    normalize_error,
)
from session_center.gateway import CommandGateway
from session_center.schemas import WorkspaceInfo


def test_valid_response_is_returned_as_model(core, gateway):
    result = asyncio.run(gateway.call(topics.WORKSPACE_GET_CURRENT))
    assert isinstance(result, WorkspaceInfo)
    assert result.current_db_path == "/data/a/incidentreview.sqlite"


def test_json_string_rejection_is_decoded(core, gateway):
    core.responses[topics.INCIDENTS_LIST] = RuntimeError(json.dumps({"code": "X", "message": "Y"}))
    with pytest.raises(CommandError) as excinfo:
        asyncio.run(gateway.call(topics.INCIDENTS_LIST))
    assert excinfo.value.code == "X"
    assert excinfo.value.error.message == "Y"
    assert excinfo.value.category == "domain"


def test_mapping_rejection_keeps_details_and_retryable(core, gateway):
    core.responses[topics.WORKSPACE_OPEN] = CoreError(
        "WORKSPACE_DB_LOCKED", "database is locked", details={"path": "/x"}, retryable=True
    )
    with pytest.raises(CommandError) as excinfo:
        asyncio.run(gateway.call(topics.WORKSPACE_OPEN, {"db_path": "/x"}))
    err = excinfo.value
    assert err.code == "WORKSPACE_DB_LOCKED"
    assert err.retryable is True
    assert json.loads(err.error.details) == {"path": "/x"}
    assert err.command == topics.WORKSPACE_OPEN


def test_schema_violation_is_distinct_from_core_errors(core, gateway):
    core.responses[topics.WORKSPACE_GET_CURRENT] = {"current_db_path": 42}
    with pytest.raises(SchemaViolation) as excinfo:
        asyncio.run(gateway.call(topics.WORKSPACE_GET_CURRENT))
    assert excinfo.value.code == CLIENT_SCHEMA_VIOLATION
    assert excinfo.value.category == "transport"


def test_missing_handler_maps_to_transport_error():
    gateway = CommandGateway(RuntimeBus())
    with pytest.raises(TransportError) as excinfo:
        asyncio.run(gateway.call(topics.APP_INFO))
    assert excinfo.value.code == TRANSPORT_NO_HANDLER


def test_transport_timeout_is_retryable():
    bus = RuntimeBus()

    async def slow(envelope):
        await asyncio.sleep(1)

    bus.register_handler(topics.APP_INFO, slow)
    gateway = CommandGateway(bus, timeout_ms=10)
    with pytest.raises(TransportError) as excinfo:
        asyncio.run(gateway.call(topics.APP_INFO))
    assert excinfo.value.code == TRANSPORT_TIMEOUT
    assert excinfo.value.retryable is True


def test_unrecognized_failure_becomes_unknown_error_with_readable_message(core, gateway):
    core.responses[topics.INCIDENTS_LIST] = ValueError("disk on fire")
    with pytest.raises(CommandError) as excinfo:
        asyncio.run(gateway.call(topics.INCIDENTS_LIST))
    assert excinfo.value.code == UNKNOWN_ERROR
    assert excinfo.value.error.message == "disk on fire"


def test_explicit_none_schema_skips_validation(core, gateway):
    core.responses[topics.WORKSPACE_GET_CURRENT] = {"anything": True}
    assert asyncio.run(gateway.call(topics.WORKSPACE_GET_CURRENT, schema=None)) == {"anything": True}


def test_every_call_records_a_span(core, gateway):
    tracing.clear_spans()
    core.responses[topics.WORKSPACE_GET_CURRENT] = workspace_info()
    asyncio.run(gateway.call(topics.WORKSPACE_GET_CURRENT))
    core.responses[topics.INCIDENTS_LIST] = CoreError("WORKSPACE_DB_LOCKED")
    with pytest.raises(CommandError):
        asyncio.run(gateway.call(topics.INCIDENTS_LIST))

    spans = tracing.get_recent_spans()
    assert [s["name"] for s in spans] == ["command.workspace_get_current", "command.incidents_list"]
    assert spans[0]["attrs"]["code"] == "OK"
    assert spans[1]["status"] == "error"
    assert spans[1]["attrs"]["code"] == "WORKSPACE_DB_LOCKED"


@pytest.mark.parametrize(
    "value, code",
    [
        ({"code": "A", "message": "m"}, "A"),
        ({"error": {"code": "B", "message": "m"}}, "B"),
        ('{"code": "C", "message": "m"}', "C"),
        ({"ok": False, "error": "timeout"}, TRANSPORT_TIMEOUT),
        ({"ok": False, "error": "no_handler"}, TRANSPORT_NO_HANDLER),
        ("plain text", UNKNOWN_ERROR),
    ],
)
def test_normalize_error_shapes(value, code):
    assert normalize_error(value).code == code


def test_normalize_error_mapping_without_code_is_json_message():
    err = normalize_error({"weird": 1})
    assert err.code == UNKNOWN_ERROR
    assert err.error.message == '{"weird": 1}'

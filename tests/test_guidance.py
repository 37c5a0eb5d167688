import pytest

from session_center.errors import AppError, CommandError
from session_center.guidance import (
    AI_GUIDANCE,
    SANITIZED_IMPORT_GUIDANCE,
    WORKSPACE_GUIDANCE,
    format_error,
    guidance_for,
    guidance_for_ai,
    guidance_for_sanitized_import,
    guidance_for_workspace,
)


@pytest.mark.parametrize(
    "table, lookup",
    [
        (WORKSPACE_GUIDANCE, guidance_for_workspace),
        (SANITIZED_IMPORT_GUIDANCE, guidance_for_sanitized_import),
        (AI_GUIDANCE, guidance_for_ai),
    ],
)
def test_every_table_entry_is_found(table, lookup):
    for code, hint in table.items():
        assert lookup(code) == hint
        assert guidance_for(code) == hint


def test_unknown_code_has_no_guidance():
    assert guidance_for("SOMETHING_ELSE") is None
    assert guidance_for_workspace("AI_INDEX_NOT_READY") is None


def test_format_without_guidance_or_details():
    assert format_error(AppError("X", "broke")) == "X: broke"


def test_format_with_details_and_guidance():
    err = CommandError(AppError("WORKSPACE_DB_LOCKED", "locked", details="pid 42"))
    text = format_error(err)
    assert text.startswith("WORKSPACE_DB_LOCKED: locked\n\nDetails:\npid 42\n\n")
    assert text.endswith(WORKSPACE_GUIDANCE["WORKSPACE_DB_LOCKED"])


def test_format_with_custom_lookup():
    text = format_error(AppError("AI_INDEX_NOT_READY", "not ready"), lookup=guidance_for_workspace)
    assert text == "AI_INDEX_NOT_READY: not ready"


def test_integrity_failures_share_guidance():
    assert (
        SANITIZED_IMPORT_GUIDANCE["INGEST_SANITIZED_MANIFEST_HASH_MISMATCH"]
        == SANITIZED_IMPORT_GUIDANCE["INGEST_SANITIZED_MANIFEST_BYTES_MISMATCH"]
    )

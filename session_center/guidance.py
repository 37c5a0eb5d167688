"""Static remediation hints shown beneath an error message.

Codes with no entry are shown as ``code: message`` only.
"""

from __future__ import annotations

from typing import Callable, Dict, Optional, Union

from .errors import AppError, CommandError

WORKSPACE_GUIDANCE: Dict[str, str] = {
    "WORKSPACE_INVALID_PATH": (
        "Pick a valid workspace path. For create: choose an existing folder. "
        "For open: choose an existing SQLite DB file."
    ),
    "WORKSPACE_DB_NOT_FOUND": "Workspace DB file not found. Create a new workspace or pick an existing DB file.",
    "WORKSPACE_OPEN_FAILED": (
        "Failed to open the workspace DB. If it is in use, close other apps using it and retry."
    ),
    "WORKSPACE_CREATE_FAILED": (
        "Failed to create the workspace DB. Choose a writable folder and a non-existing filename."
    ),
    "WORKSPACE_MIGRATION_FAILED": (
        "Failed to migrate the workspace DB schema. If this DB was created by an incompatible version, "
        "create a fresh workspace."
    ),
    "WORKSPACE_PERSIST_FAILED": (
        "Failed to persist workspace selection locally. Your data is not uploaded anywhere, "
        "but the app may not remember the last workspace."
    ),
    "WORKSPACE_DB_LOCKED": "Workspace DB appears locked. Close other processes using the DB and retry.",
    "WORKSPACE_UNSUPPORTED_SCHEMA_VERSION": (
        "Workspace DB schema is unsupported. Create a fresh workspace or migrate using a compatible app version."
    ),
}

_INTEGRITY_HINT = (
    "This sanitized dataset folder failed integrity checks (hash/size mismatch). "
    "Re-export and try again; do not edit files in-place."
)

SANITIZED_IMPORT_GUIDANCE: Dict[str, str] = {
    "INGEST_SANITIZED_DB_NOT_EMPTY": (
        "This import refuses to run on a non-empty DB. Restore or seed into a fresh DB first, then retry."
    ),
    "INGEST_SANITIZED_MANIFEST_VERSION_MISMATCH": (
        "This sanitized dataset export is from an incompatible version. "
        "Re-export the sanitized dataset using a compatible app version."
    ),
    "INGEST_SANITIZED_MANIFEST_HASH_MISMATCH": _INTEGRITY_HINT,
    "INGEST_SANITIZED_MANIFEST_BYTES_MISMATCH": _INTEGRITY_HINT,
    "INGEST_SANITIZED_METRICS_MISMATCH": (
        "This sanitized dataset failed deterministic metrics verification. "
        "Re-export and try again; if it persists, treat the dataset as corrupted."
    ),
}

AI_GUIDANCE: Dict[str, str] = {
    "AI_DISABLED_OR_GATED": (
        "AI features are currently gated. Complete the required preflight steps "
        "(health check, evidence, chunks, index) before drafting."
    ),
    "AI_OLLAMA_UNHEALTHY": (
        "Ollama is not reachable on 127.0.0.1. Start Ollama locally, then retry the health check. "
        "No external network is used."
    ),
    "AI_INDEX_NOT_READY": "The AI index is not ready. Build evidence chunks first, then build the embeddings index.",
    "AI_EVIDENCE_EMPTY": (
        "No evidence sources are available. Add at least one evidence source "
        "(sanitized export, Slack transcript, report MD, or freeform text)."
    ),
    "AI_EVIDENCE_SOURCE_INVALID": (
        "The evidence source is invalid. Check the selected path exists and matches the chosen source type "
        "(file vs directory vs paste)."
    ),
    "AI_INDEX_BUILD_FAILED": (
        "Index build failed. Confirm evidence chunks exist, and that your local environment can write "
        "to the app data directory."
    ),
    "AI_EMBEDDINGS_FAILED": (
        "Embeddings failed. Ensure your Ollama instance is healthy and supports the embeddings endpoint "
        "and model you selected (for example, nomic-embed-text)."
    ),
    "AI_RETRIEVAL_FAILED": "Retrieval failed. Ensure the index is built and the query is non-empty, then retry.",
    "AI_CITATION_REQUIRED": (
        "Citations are required. Select at least one evidence chunk and ensure the draft includes "
        "citation markers [[chunk:<chunk_id>]]."
    ),
    "AI_CITATION_INVALID": "Citations are invalid. Ensure cited chunk IDs exist and match the selected citation set.",
    "AI_DRAFT_FAILED": (
        "Drafting failed. Ensure Ollama is healthy and a local model is installed "
        "(the app currently defaults to a local llama3 model)."
    ),
}


def guidance_for_workspace(code: str) -> Optional[str]:
    return WORKSPACE_GUIDANCE.get(code)


def guidance_for_sanitized_import(code: str) -> Optional[str]:
    return SANITIZED_IMPORT_GUIDANCE.get(code)


def guidance_for_ai(code: str) -> Optional[str]:
    return AI_GUIDANCE.get(code)


def guidance_for(code: str) -> Optional[str]:
    """Look a code up in every table, workspace first."""
    for table in (WORKSPACE_GUIDANCE, SANITIZED_IMPORT_GUIDANCE, AI_GUIDANCE):
        if code in table:
            return table[code]
    return None


def format_error(
    error: Union[AppError, CommandError],
    lookup: Callable[[str], Optional[str]] = guidance_for,
) -> str:
    """Render ``code: message``, then details and guidance when present."""
    record = error.error if isinstance(error, CommandError) else error
    text = record.describe()
    hint = lookup(record.code)
    if hint:
        text = f"{text}\n\n{hint}"
    return text

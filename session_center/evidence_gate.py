"""Readiness gate for the AI evidence pipeline.

``compute_gate`` is a pure function of five readiness signals. The checks run
in a fixed order and the first failing one decides both the outcome and the
single reason code shown to the user.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .errors import PreconditionError

AI_OLLAMA_UNHEALTHY = "AI_OLLAMA_UNHEALTHY"
AI_EVIDENCE_EMPTY = "AI_EVIDENCE_EMPTY"
AI_INDEX_NOT_READY = "AI_INDEX_NOT_READY"
AI_CITATION_REQUIRED = "AI_CITATION_REQUIRED"


@dataclass(frozen=True)
class EvidenceGateInputs:
    """None means the signal has not been fetched yet."""

    health_ok: Optional[bool] = None
    sources_count: Optional[int] = 0
    chunks_count: Optional[int] = 0
    index_ready: Optional[bool] = None
    selected_citations_count: int = 0


@dataclass(frozen=True)
class EvidenceGateResult:
    can_search: bool
    can_draft: bool
    reason_code: Optional[str] = None
    reason_message: Optional[str] = None


def _blocked(code: str, message: str) -> EvidenceGateResult:
    return EvidenceGateResult(can_search=False, can_draft=False, reason_code=code, reason_message=message)


def compute_gate(inputs: EvidenceGateInputs) -> EvidenceGateResult:
    if inputs.health_ok is False:
        return _blocked(AI_OLLAMA_UNHEALTHY, "Ollama is not reachable on 127.0.0.1.")
    if inputs.sources_count == 0:
        return _blocked(AI_EVIDENCE_EMPTY, "Add at least one evidence source.")
    # Chunk-less sources and an unbuilt index share one code.
    if inputs.chunks_count == 0:
        return _blocked(AI_INDEX_NOT_READY, "Build evidence chunks before indexing/search.")
    if inputs.index_ready is False:
        return _blocked(AI_INDEX_NOT_READY, "Build the embeddings index before searching/drafting.")
    unknown = (inputs.health_ok, inputs.sources_count, inputs.chunks_count, inputs.index_ready)
    if any(signal is None for signal in unknown):
        return EvidenceGateResult(can_search=False, can_draft=False)
    if inputs.selected_citations_count == 0:
        return EvidenceGateResult(
            can_search=True,
            can_draft=False,
            reason_code=AI_CITATION_REQUIRED,
            reason_message="Select at least one citation chunk before drafting.",
        )
    return EvidenceGateResult(can_search=True, can_draft=True)


def require_search(inputs: EvidenceGateInputs) -> EvidenceGateResult:
    result = compute_gate(inputs)
    if not result.can_search:
        raise PreconditionError(
            result.reason_code or "AI_DISABLED_OR_GATED",
            result.reason_message or "AI readiness is not known yet.",
        )
    return result


def require_draft(inputs: EvidenceGateInputs) -> EvidenceGateResult:
    result = compute_gate(inputs)
    if not result.can_draft:
        raise PreconditionError(
            result.reason_code or "AI_DISABLED_OR_GATED",
            result.reason_message or "AI readiness is not known yet.",
        )
    return result

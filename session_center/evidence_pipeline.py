from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, FrozenSet, Iterable, List, Optional

from runtime_bus import topics

from .errors import AI_OLLAMA_UNHEALTHY, CommandError
from .evidence_gate import EvidenceGateInputs, EvidenceGateResult, compute_gate, require_draft, require_search

if TYPE_CHECKING:
    from .gateway import CommandGateway

logger = logging.getLogger(__name__)

_DEFAULT_ORIGIN_KIND = {
    "sanitized_export": "directory",
    "slack_transcript": "file",
    "incident_report_md": "file",
    "freeform_text": "paste",
}


def default_origin_kind(source_type: str) -> str:
    return _DEFAULT_ORIGIN_KIND.get(source_type, "file")


class EvidencePipeline:
    """Client-side view of the AI evidence pipeline and its readiness signals.

    ``health_ok``, ``index_ready``, ``sources`` and ``chunks`` start as None
    (unknown) and are only filled in once the core service has been asked.
    """

    def __init__(self, gateway: "CommandGateway"):
        self._gateway = gateway
        self.health_ok: Optional[bool] = None
        self.health_message: str = ""
        self.sources: Optional[List[Any]] = None
        self.chunks: Optional[List[Any]] = None
        self.index_status: Optional[Any] = None
        self.selected_source_id: Optional[str] = None
        self._selected_citations: FrozenSet[str] = frozenset()

    # --- readiness ----------------------------------------------------------
    @property
    def index_ready(self) -> Optional[bool]:
        if self.index_status is None:
            return None
        return bool(self.index_status.ready)

    @property
    def selected_citations(self) -> FrozenSet[str]:
        return self._selected_citations

    def gate_inputs(self) -> EvidenceGateInputs:
        return EvidenceGateInputs(
            health_ok=self.health_ok,
            sources_count=None if self.sources is None else len(self.sources),
            chunks_count=None if self.chunks is None else len(self.chunks),
            index_ready=self.index_ready,
            selected_citations_count=len(self._selected_citations),
        )

    def gate(self) -> EvidenceGateResult:
        return compute_gate(self.gate_inputs())

    def require_search(self) -> EvidenceGateResult:
        return require_search(self.gate_inputs())

    def require_draft(self) -> EvidenceGateResult:
        return require_draft(self.gate_inputs())

    # --- core-service calls -----------------------------------------------
    async def check_health(self) -> bool:
        try:
            status = await self._gateway.call(topics.AI_HEALTH_CHECK)
        except CommandError as exc:
            if exc.code != AI_OLLAMA_UNHEALTHY:
                raise
            self.health_ok = False
            self.health_message = exc.error.message
            return False
        self.health_ok = bool(status.ok)
        self.health_message = status.message
        return self.health_ok

    async def refresh_sources(self) -> List[Any]:
        self.sources = list(await self._gateway.call(topics.AI_EVIDENCE_LIST_SOURCES))
        known = {source.source_id for source in self.sources}
        if self.selected_source_id not in known:
            self.selected_source_id = self.sources[0].source_id if self.sources else None
        return self.sources

    async def add_source(
        self,
        source_type: str,
        label: str,
        *,
        path: Optional[str] = None,
        text: Optional[str] = None,
    ) -> List[Any]:
        kind = default_origin_kind(source_type)
        origin = {"kind": kind, "path": None if kind == "paste" else path}
        req = {
            "type": source_type,
            "origin": origin,
            "label": label,
            "text": text if kind == "paste" else None,
        }
        await self._gateway.call(topics.AI_EVIDENCE_ADD_SOURCE, {"req": req})
        logger.info("evidence source added type=%s label=%s", source_type, label)
        return await self.refresh_sources()

    def select_source(self, source_id: Optional[str]) -> None:
        self.selected_source_id = source_id

    async def build_chunks(self, source_id: Optional[str] = None) -> Any:
        target = source_id if source_id is not None else self.selected_source_id
        result = await self._gateway.call(topics.AI_EVIDENCE_BUILD_CHUNKS, {"source_id": target})
        await self.refresh_chunks(target)
        return result

    async def refresh_chunks(self, source_id: Optional[str] = None) -> List[Any]:
        self.chunks = list(await self._gateway.call(topics.AI_EVIDENCE_LIST_CHUNKS, {"source_id": source_id}))
        known = {chunk.chunk_id for chunk in self.chunks}
        dropped = self._selected_citations - known
        if dropped:
            logger.info("dropping citations no longer present count=%s", len(dropped))
            self._selected_citations = self._selected_citations & known
        return self.chunks

    async def refresh_index_status(self) -> Any:
        self.index_status = await self._gateway.call(
            topics.AI_INDEX_STATUS, {"source_id": self.selected_source_id}
        )
        return self.index_status

    # --- citations ----------------------------------------------------------
    def select_citations(self, chunk_ids: Iterable[str]) -> FrozenSet[str]:
        known = {chunk.chunk_id for chunk in self.chunks or ()}
        self._selected_citations = frozenset(cid for cid in chunk_ids if cid in known)
        return self._selected_citations

    def toggle_citation(self, chunk_id: str) -> FrozenSet[str]:
        if chunk_id in self._selected_citations:
            self._selected_citations = self._selected_citations - {chunk_id}
        elif any(chunk.chunk_id == chunk_id for chunk in self.chunks or ()):
            self._selected_citations = self._selected_citations | {chunk_id}
        return self._selected_citations

    def clear_citations(self) -> None:
        self._selected_citations = frozenset()

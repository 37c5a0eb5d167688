import asyncio

import pytest

from core_fakes import CoreError
from runtime_bus import topics
from session_center.errors import CommandError, PreconditionError
from session_center.evidence_gate import AI_CITATION_REQUIRED, AI_EVIDENCE_EMPTY
from session_center.evidence_pipeline import EvidencePipeline, default_origin_kind


def _source(source_id, source_type="freeform_text"):
    kind = default_origin_kind(source_type)
    return {
        "source_id": source_id,
        "type": source_type,
        "origin": {"kind": kind, "path": None if kind == "paste" else f"/evidence/{source_id}"},
        "label": f"Source {source_id}",
        "created_at": "2026-01-01T00:00:00Z",
    }


def _chunk(chunk_id, source_id="s1", ordinal=0):
    return {
        "chunk_id": chunk_id,
        "source_id": source_id,
        "ordinal": ordinal,
        "text_sha256": "ef" * 32,
        "token_count_est": 40,
        "meta": {"kind": "freeform_text"},
    }


@pytest.fixture()
def pipeline(core, gateway):
    core.responses.update(
        {
            topics.AI_HEALTH_CHECK: {"ok": True, "message": "ok"},
            topics.AI_EVIDENCE_LIST_SOURCES: [_source("s1")],
            topics.AI_EVIDENCE_ADD_SOURCE: {"source_id": "s2"},
            topics.AI_EVIDENCE_LIST_CHUNKS: [_chunk("c1"), _chunk("c2", ordinal=1)],
            topics.AI_EVIDENCE_BUILD_CHUNKS: {"source_id": "s1", "chunk_count": 2, "updated_at": "2026-01-01T00:00:00Z"},
            topics.AI_INDEX_STATUS: {"ready": True, "model": "nomic-embed-text", "dims": 768, "chunk_count": 2},
        }
    )
    return EvidencePipeline(gateway)


def test_origin_kind_defaults():
    assert default_origin_kind("sanitized_export") == "directory"
    assert default_origin_kind("slack_transcript") == "file"
    assert default_origin_kind("freeform_text") == "paste"


def test_unhealthy_reply_marks_health_false(core, pipeline):
    core.responses[topics.AI_HEALTH_CHECK] = CoreError("AI_OLLAMA_UNHEALTHY", "connection refused")
    assert asyncio.run(pipeline.check_health()) is False
    assert pipeline.health_ok is False
    assert pipeline.health_message == "connection refused"


def test_other_health_failures_propagate(core, pipeline):
    core.responses[topics.AI_HEALTH_CHECK] = CoreError("AI_UNKNOWN", "boom")
    with pytest.raises(CommandError):
        asyncio.run(pipeline.check_health())
    assert pipeline.health_ok is None


def test_add_source_sends_request_and_refreshes(core, pipeline):
    asyncio.run(pipeline.add_source("freeform_text", "Notes", path="/ignored", text="db failover at 10:02"))
    asyncio.run(pipeline.add_source("slack_transcript", "Slack", path="/evidence/slack.json", text="ignored"))

    sent = core.payloads(topics.AI_EVIDENCE_ADD_SOURCE)
    assert sent[0] == {
        "req": {
            "type": "freeform_text",
            "origin": {"kind": "paste", "path": None},
            "label": "Notes",
            "text": "db failover at 10:02",
        }
    }
    assert sent[1]["req"]["origin"] == {"kind": "file", "path": "/evidence/slack.json"}
    assert sent[1]["req"]["text"] is None
    assert pipeline.selected_source_id == "s1"
    assert pipeline.sources[0].source_type == "freeform_text"


def test_fresh_pipeline_is_unknown_not_empty(pipeline):
    assert pipeline.sources is None and pipeline.chunks is None
    gate = pipeline.gate()
    assert (gate.can_search, gate.can_draft, gate.reason_code) == (False, False, None)

    asyncio.run(pipeline.check_health())
    assert pipeline.gate().reason_code is None


def test_gate_follows_pipeline_state(core, pipeline):
    asyncio.run(pipeline.check_health())
    core.responses[topics.AI_EVIDENCE_LIST_SOURCES] = []
    asyncio.run(pipeline.refresh_sources())
    assert pipeline.gate().reason_code == AI_EVIDENCE_EMPTY

    core.responses[topics.AI_EVIDENCE_LIST_SOURCES] = [_source("s1")]
    asyncio.run(pipeline.refresh_sources())
    assert pipeline.gate().reason_code is None
    asyncio.run(pipeline.build_chunks())
    asyncio.run(pipeline.refresh_index_status())
    assert pipeline.index_ready is True
    assert pipeline.require_search().can_search
    with pytest.raises(PreconditionError) as excinfo:
        pipeline.require_draft()
    assert excinfo.value.code == AI_CITATION_REQUIRED

    pipeline.toggle_citation("c1")
    assert pipeline.require_draft().can_draft


def test_build_chunks_targets_selected_source(core, pipeline):
    asyncio.run(pipeline.refresh_sources())
    asyncio.run(pipeline.build_chunks())
    asyncio.run(pipeline.refresh_index_status())
    assert core.payloads(topics.AI_EVIDENCE_BUILD_CHUNKS) == [{"source_id": "s1"}]
    assert core.payloads(topics.AI_EVIDENCE_LIST_CHUNKS) == [{"source_id": "s1"}]
    assert core.payloads(topics.AI_INDEX_STATUS) == [{"source_id": "s1"}]


def test_citations_are_limited_to_known_chunks(core, pipeline):
    asyncio.run(pipeline.refresh_chunks("s1"))
    assert pipeline.select_citations(["c1", "c2", "missing"]) == frozenset({"c1", "c2"})
    assert pipeline.toggle_citation("missing") == frozenset({"c1", "c2"})
    assert pipeline.toggle_citation("c2") == frozenset({"c1"})

    core.responses[topics.AI_EVIDENCE_LIST_CHUNKS] = [_chunk("c3")]
    asyncio.run(pipeline.refresh_chunks("s1"))
    assert pipeline.selected_citations == frozenset()


def test_removed_selected_source_falls_back_to_first(core, pipeline):
    pipeline.select_source("gone")
    core.responses[topics.AI_EVIDENCE_LIST_SOURCES] = [_source("s7"), _source("s8")]
    asyncio.run(pipeline.refresh_sources())
    assert pipeline.selected_source_id == "s7"

"""Response shapes for the core-service commands.

Each command maps to the pydantic model (or ``TypeAdapter`` for lists and
scalars) its response must satisfy. ``None`` means the response is passed
through without a shape check.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, TypeAdapter

from runtime_bus import topics


class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True)


class AppErrorModel(_Payload):
    code: str
    message: str
    details: Optional[str] = None
    retryable: bool


class ValidationWarning(_Payload):
    code: str
    message: str
    details: Optional[str] = None


# === Workspace ================================================================
class WorkspaceInfo(_Payload):
    current_db_path: str
    recent_db_paths: List[str]
    load_error: Optional[AppErrorModel] = None


class WorkspaceMetadata(_Payload):
    db_path: str
    is_empty: bool


class MigrationStatus(_Payload):
    latest_migration: str
    pending_migrations: List[str]


class InitDbResponse(_Payload):
    db_path: str


# === Incidents / dashboards ===================================================
class IncidentListItem(_Payload):
    id: int
    external_id: Optional[str]
    title: str


class SeverityCount(_Payload):
    severity: str
    count: NonNegativeInt
    incident_ids: List[int]


class CategoryBucket(_Payload):
    key: str
    label: str
    count: NonNegativeInt
    incident_ids: List[int]


class PainBucket(_Payload):
    key: str
    label: str
    count: NonNegativeInt
    pain_sum: NonNegativeInt
    pain_known_count: NonNegativeInt
    incident_ids: List[int]


class DetectionStory(_Payload):
    detection_source_mix: List[CategoryBucket]
    it_awareness_lag_buckets: List[CategoryBucket]


class VendorServiceStory(_Payload):
    top_vendors_by_count: List[CategoryBucket]
    top_services_by_count: List[CategoryBucket]
    top_vendors_by_pain: List[PainBucket]
    top_services_by_pain: List[PainBucket]


class ResponseStory(_Payload):
    time_to_mitigation_buckets: List[CategoryBucket]
    time_to_resolve_buckets: List[CategoryBucket]


class IncidentSummary(_Payload):
    id: int
    external_id: Optional[str]
    title: str
    severity: Optional[str]
    detection_source: Optional[str]
    vendor: Optional[str]
    service: Optional[str]
    it_awareness_lag_seconds: Optional[int]
    time_to_mitigation_seconds: Optional[int]
    mttr_seconds: Optional[int]
    warning_count: NonNegativeInt


class DashboardPayload(_Payload):
    version: int
    incident_count: NonNegativeInt
    severity_counts: List[SeverityCount]
    incidents: List[IncidentSummary]
    detection_story: DetectionStory
    vendor_service_story: VendorServiceStory
    response_story: ResponseStory


class ValidationReportItem(_Payload):
    id: int
    external_id: Optional[str]
    title: str
    warnings: List[ValidationWarning]


class Incident(_Payload):
    id: int
    external_id: Optional[str]
    fingerprint: str
    title: str
    description: Optional[str]
    severity: Optional[str]
    detection_source: Optional[str]
    vendor: Optional[str]
    service: Optional[str]
    impact_pct: Optional[int]
    service_health_pct: Optional[int]
    start_ts: Optional[str]
    first_observed_ts: Optional[str]
    it_awareness_ts: Optional[str]
    ack_ts: Optional[str]
    mitigate_ts: Optional[str]
    resolve_ts: Optional[str]


class IncidentMetrics(_Payload):
    mttd_seconds: Optional[int]
    it_awareness_lag_seconds: Optional[int]
    mtta_seconds: Optional[int]
    time_to_mitigation_seconds: Optional[int]
    mttr_seconds: Optional[int]


class Artifact(_Payload):
    id: int
    incident_id: Optional[int]
    kind: str
    sha256: str
    filename: Optional[str]
    mime_type: Optional[str]
    text: Optional[str]
    created_at: str


class TimelineEvent(_Payload):
    id: int
    incident_id: Optional[int]
    source: str
    ts: Optional[str]
    author: Optional[str]
    kind: Optional[str]
    text: str
    raw_json: Optional[str]
    created_at: str


class IncidentDetail(_Payload):
    incident: Incident
    metrics: IncidentMetrics
    warnings: List[ValidationWarning]
    artifacts: List[Artifact]
    timeline_events: List[TimelineEvent]


# === Backup / restore =========================================================
class BackupFileEntry(_Payload):
    rel_path: str
    sha256: str
    bytes: NonNegativeInt


class BackupCounts(_Payload):
    incidents: NonNegativeInt
    timeline_events: NonNegativeInt
    artifacts_rows: NonNegativeInt


class BackupDbInfo(_Payload):
    filename: str
    sha256: str
    bytes: NonNegativeInt


class BackupArtifactsInfo(_Payload):
    included: bool
    files: List[BackupFileEntry]


class BackupManifest(_Payload):
    manifest_version: NonNegativeInt
    app_version: str
    export_time: str
    schema_migrations: List[str]
    counts: BackupCounts
    db: BackupDbInfo
    artifacts: BackupArtifactsInfo


class BackupCreateResult(_Payload):
    backup_dir: str
    manifest: BackupManifest


class RestoreResult(_Payload):
    ok: bool
    restored_db_path: str
    restored_artifacts: bool


# === Sanitized datasets =======================================================
class SanitizedExportResult(_Payload):
    export_dir: str
    incident_count: NonNegativeInt


class SanitizedFileInfo(_Payload):
    filename: str
    bytes: NonNegativeInt
    sha256: str


class SanitizedExportManifest(_Payload):
    manifest_version: int
    app_version: str
    export_time: str
    incident_count: NonNegativeInt
    files: List[SanitizedFileInfo]


class SanitizedImportSummary(_Payload):
    inserted_incidents: NonNegativeInt
    inserted_timeline_events: NonNegativeInt
    import_warnings: List[ValidationWarning]


# === Local AI =================================================================
EvidenceSourceType = Literal["sanitized_export", "slack_transcript", "incident_report_md", "freeform_text"]


class AiHealthStatus(_Payload):
    ok: bool
    message: str


class AiModelInfo(_Payload):
    name: str
    size: Optional[int] = None
    digest: Optional[str] = None
    modified_at: Optional[str] = None


class EvidenceOrigin(_Payload):
    kind: Literal["file", "directory", "paste"]
    path: Optional[str] = None


class EvidenceSource(_Payload):
    source_id: str
    source_type: EvidenceSourceType = Field(alias="type")
    origin: EvidenceOrigin
    label: str
    created_at: str


class EvidenceTimeRange(_Payload):
    start_ts: Optional[str] = None
    end_ts: Optional[str] = None


class EvidenceChunkMeta(_Payload):
    kind: str
    incident_keys: Optional[List[str]] = None
    time_range: Optional[EvidenceTimeRange] = None


class EvidenceChunkSummary(_Payload):
    chunk_id: str
    source_id: str
    ordinal: NonNegativeInt
    text_sha256: str
    token_count_est: NonNegativeInt
    meta: EvidenceChunkMeta


class BuildChunksResult(_Payload):
    source_id: Optional[str] = None
    chunk_count: NonNegativeInt
    updated_at: str


class AiIndexStatus(_Payload):
    ready: bool
    model: Optional[str] = None
    dims: Optional[int] = None
    chunk_count: NonNegativeInt
    chunks_total: NonNegativeInt = 0
    source_id: Optional[str] = None
    updated_at: Optional[str] = None


# === About ====================================================================
class AppInfo(_Payload):
    app_version: str
    git_commit_hash: Optional[str] = None
    current_db_path: str
    latest_migration: str
    applied_migrations: List[str]


COMMAND_SCHEMAS: Dict[str, Any] = {
    topics.WORKSPACE_GET_CURRENT: WorkspaceInfo,
    topics.WORKSPACE_MIGRATION_STATUS: MigrationStatus,
    topics.WORKSPACE_CREATE: WorkspaceMetadata,
    topics.WORKSPACE_OPEN: WorkspaceMetadata,
    topics.INIT_DB: InitDbResponse,
    topics.INCIDENTS_LIST: TypeAdapter(List[IncidentListItem]),
    topics.GET_DASHBOARD_V2: DashboardPayload,
    topics.GENERATE_REPORT_MD: TypeAdapter(str),
    topics.VALIDATION_REPORT: TypeAdapter(List[ValidationReportItem]),
    topics.INCIDENT_DETAIL: IncidentDetail,
    topics.BACKUP_CREATE: BackupCreateResult,
    topics.BACKUP_INSPECT: BackupManifest,
    topics.RESTORE_FROM_BACKUP: RestoreResult,
    topics.EXPORT_SANITIZED_DATASET: SanitizedExportResult,
    topics.INSPECT_SANITIZED_DATASET: SanitizedExportManifest,
    topics.IMPORT_SANITIZED_DATASET: SanitizedImportSummary,
    topics.AI_HEALTH_CHECK: AiHealthStatus,
    topics.AI_MODELS_LIST: TypeAdapter(List[AiModelInfo]),
    topics.AI_EVIDENCE_LIST_SOURCES: TypeAdapter(List[EvidenceSource]),
    # The add-source reply is not used; the source list is re-fetched instead.
    topics.AI_EVIDENCE_ADD_SOURCE: None,
    topics.AI_EVIDENCE_BUILD_CHUNKS: BuildChunksResult,
    topics.AI_EVIDENCE_LIST_CHUNKS: TypeAdapter(List[EvidenceChunkSummary]),
    topics.AI_INDEX_STATUS: AiIndexStatus,
    topics.APP_INFO: AppInfo,
}


def validate_response(schema: Any, value: Any) -> Any:
    """Run ``value`` through ``schema``; raises ``pydantic.ValidationError``."""
    if schema is None:
        return value
    if isinstance(schema, TypeAdapter):
        return schema.validate_python(value)
    return schema.model_validate(value)

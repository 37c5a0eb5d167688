"""Command names understood by the core service, plus client notifications."""

# Workspace
WORKSPACE_GET_CURRENT = "workspace_get_current"
WORKSPACE_MIGRATION_STATUS = "workspace_migration_status"
WORKSPACE_CREATE = "workspace_create"
WORKSPACE_OPEN = "workspace_open"
INIT_DB = "init_db"

# Workspace-scoped views
INCIDENTS_LIST = "incidents_list"
GET_DASHBOARD_V2 = "get_dashboard_v2"
GENERATE_REPORT_MD = "generate_report_md"
VALIDATION_REPORT = "validation_report"
INCIDENT_DETAIL = "incident_detail"

# Backup / restore
BACKUP_CREATE = "backup_create"
BACKUP_INSPECT = "backup_inspect"
RESTORE_FROM_BACKUP = "restore_from_backup"

# Sanitized datasets
EXPORT_SANITIZED_DATASET = "export_sanitized_dataset"
INSPECT_SANITIZED_DATASET = "inspect_sanitized_dataset"
IMPORT_SANITIZED_DATASET = "import_sanitized_dataset"

# Local AI
AI_HEALTH_CHECK = "ai_health_check"
AI_MODELS_LIST = "ai_models_list"
AI_EVIDENCE_LIST_SOURCES = "ai_evidence_list_sources"
AI_EVIDENCE_ADD_SOURCE = "ai_evidence_add_source"
AI_EVIDENCE_BUILD_CHUNKS = "ai_evidence_build_chunks"
AI_EVIDENCE_LIST_CHUNKS = "ai_evidence_list_chunks"
AI_INDEX_STATUS = "ai_index_status"

# About
APP_INFO = "app_info"

# Client notifications (publish only)
WORKSPACE_ACTIVE_CHANGED = "workspace.active.changed"

__all__ = [
    "WORKSPACE_GET_CURRENT",
    "WORKSPACE_MIGRATION_STATUS",
    "WORKSPACE_CREATE",
    "WORKSPACE_OPEN",
    "INIT_DB",
    "INCIDENTS_LIST",
    "GET_DASHBOARD_V2",
    "GENERATE_REPORT_MD",
    "VALIDATION_REPORT",
    "INCIDENT_DETAIL",
    "BACKUP_CREATE",
    "BACKUP_INSPECT",
    "RESTORE_FROM_BACKUP",
    "EXPORT_SANITIZED_DATASET",
    "INSPECT_SANITIZED_DATASET",
    "IMPORT_SANITIZED_DATASET",
    "AI_HEALTH_CHECK",
    "AI_MODELS_LIST",
    "AI_EVIDENCE_LIST_SOURCES",
    "AI_EVIDENCE_ADD_SOURCE",
    "AI_EVIDENCE_BUILD_CHUNKS",
    "AI_EVIDENCE_LIST_CHUNKS",
    "AI_INDEX_STATUS",
    "APP_INFO",
    "WORKSPACE_ACTIVE_CHANGED",
]

"""Shared constants for persisted formats."""

CYCLE_RECORD_KEY = "gitLabHelperSprintState"
HISTORY_LOG_KEY = "gitLabHelperSprintHistory"

EXPORT_FORMAT_VERSION = "1.0"
RECORDS_TABLE = "sprint_records"

"""Application constants."""

COMMANDS = (
    "audit",
    "dedupe",
    "plan",
    "forget-list",
    "fix-postcode",
)
EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "list",
    "event",
    "status",
    "duration_ms",
    "rows_in",
    "rows_out",
    "error_code",
    "message",
)

SCHEDULING_MODES = ("deadline", "followup", "priority")
MASTER_LIST_NAME = "Masterfile"
STATE_VERSION = "v1"

"""Domain errors and failure typing."""


class PlannerError(Exception):
    """Base class for planner failures."""

    error_code = "PLANNER_ERROR"


class ConfigError(PlannerError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class StageError(PlannerError):
    """Raised for stage failures that should halt in strict mode."""

    error_code = "STAGE_ERROR"


class IngestError(StageError):
    """Raised when an uploaded list cannot be mapped onto canonical fields."""

    error_code = "INGEST_ERROR"

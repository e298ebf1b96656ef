from __future__ import annotations


class TlmQueryError(Exception):
    """Base error for telemetry retrieval failures."""


class InvalidRequest(TlmQueryError, ValueError):
    """Raised when a request or one of its parts is constructed with invalid inputs."""


class SettingsError(TlmQueryError):
    """Raised when project settings are missing or malformed."""


class BackendNotInstalled(RuntimeError):
    pass


# ---- per-source failures (returned as Err values, never raised past the aggregator) ----
class DiscoveryError(TlmQueryError):
    """No physical source matched the requested range or selection."""


class SchemaProbeError(TlmQueryError):
    pass


class NoTablesFound(SchemaProbeError):
    pass


class ColumnsNotFound(SchemaProbeError):
    pass


class QueryExecutionError(TlmQueryError):
    pass


class BackendConnectionError(QueryExecutionError):
    pass


class BackendError(QueryExecutionError):
    """Query failed upstream; the message is the backend's own."""


class MalformedRowSchema(QueryExecutionError):
    """A returned row violates the number | null | timestamp value contract."""


class TranspositionError(TlmQueryError):
    pass


class NoTimeColumn(TranspositionError):
    pass


class RequestTimeout(TlmQueryError):
    pass

"""Exception hierarchy shared by every stage of the pipeline.

    ConfigError  - fatal, raised before any scan or parse begins
    ParserError  - fatal for one RequirementSource invocation
"""


class ReqTraceError(Exception):
    """Base exception for all reqtrace errors."""


class ConfigError(ReqTraceError):
    """Raised when the configuration is missing or invalid."""


class ParserError(ReqTraceError):
    """Raised when a requirement source cannot produce requirements."""

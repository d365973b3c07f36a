# util/errors.py
from fastapi import HTTPException, status


class AppError(HTTPException):
    # Flow: raise AppError to short-circuit with a typed status & message.
    def __init__(
        self, message: str, http_status: int = status.HTTP_400_BAD_REQUEST
    ) -> None:
        super().__init__(status_code=http_status, detail=message)


class BillLensError(Exception):
    """
    Base for every failure the query pipeline knows how to classify.
    `kind` is the machine-readable classification surfaced to API callers.
    """

    kind: str = "internal_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# ---------------- Indexing ----------------


class ParseError(BillLensError):
    kind = "parse_error"


class SectionExtractionWarning(UserWarning):
    """A subtree could not be turned into a Section; indexing continues."""


# ---------------- Tools ----------------


class ToolError(BillLensError):
    kind = "tool_error"


class UnknownToolError(ToolError):
    kind = "unknown_tool"

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class InvalidArgumentsError(ToolError):
    kind = "invalid_arguments"

    def __init__(self, name: str, details: list[str]) -> None:
        super().__init__(f"Invalid arguments for {name}: {'; '.join(details)}")
        self.name = name
        self.details = details


# ---------------- External model ----------------


class ModelError(BillLensError):
    kind = "model_error"


class RateLimitError(ModelError):
    kind = "rate_limited"

    def __init__(self, message: str, retry_after: int | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class TransportError(ModelError):
    kind = "transport_error"


class ModelTimeoutError(TransportError):
    kind = "timeout"


class ModelApiError(ModelError):
    kind = "model_api_error"

    def __init__(self, message: str, http_status: int | None = None) -> None:
        super().__init__(message)
        self.http_status = http_status


class MalformedModelOutputError(ModelError):
    kind = "malformed_model_output"


# ---------------- Conversation ----------------


class ProtocolViolationError(BillLensError):
    """Tool invocation / tool result pairing broken. Always a bug."""

    kind = "protocol_error"


class QueryCancelledError(BillLensError):
    kind = "cancelled"


class InvalidQueryError(BillLensError):
    kind = "invalid_query"

    def __init__(self, errors: list[str]) -> None:
        super().__init__("Invalid query: " + "; ".join(errors))
        self.errors = errors

"""Relay error hierarchy.

Each error knows the HTTP status it maps to; the FastAPI layer turns it into
the uniform `{"success": false, "message": ...}` body.
"""

from typing import Any


class RelayError(Exception):
    """Base class for failures surfaced to the caller."""

    status_code = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"success": False, "message": self.message}


class MalformedPayload(RelayError):
    """Inbound body is not a JSON object."""

    status_code = 400


class MissingField(RelayError):
    """One or more required keys are absent or null."""

    status_code = 400

    def __init__(self, fields: list[str]) -> None:
        self.fields = list(fields)
        super().__init__(f"missing required field(s): {', '.join(self.fields)}")


class MethodNotAllowed(RelayError):
    status_code = 405

    def __init__(self, method: str) -> None:
        self.method = method
        super().__init__(f"method {method} not allowed; use POST")


class InternalFailure(RelayError):
    """Unexpected failure; detail stays in server logs."""

    status_code = 500

    def __init__(self, message: str = "internal error while processing payment") -> None:
        super().__init__(message)


class BackendUnreachable(Exception):
    """Outbound call could not be completed (refused, DNS, timeout).

    Never reaches the caller: the pipeline answers with a fallback result.
    """

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"backend unreachable url={url} reason={reason}")

from __future__ import annotations

ERROR_KIND_STATUS = "status"
ERROR_KIND_MALFORMED = "malformed_response"
ERROR_KIND_NETWORK = "network"
ERROR_KIND_UNKNOWN = "unknown"


class GenerationError(RuntimeError):
    def __init__(self, message: str, *, error_kind: str = ERROR_KIND_UNKNOWN) -> None:
        super().__init__(message)
        self.error_kind = str(error_kind or ERROR_KIND_UNKNOWN).strip().lower()


class ServiceStatusError(GenerationError):
    def __init__(self, service: str, status_code: int, body: str = "") -> None:
        preview = body[:200]
        super().__init__(
            f"{service} service returned HTTP {status_code}: {preview}",
            error_kind=ERROR_KIND_STATUS,
        )
        self.service = service
        self.status_code = status_code


class MalformedResponseError(GenerationError):
    def __init__(self, message: str) -> None:
        super().__init__(message, error_kind=ERROR_KIND_MALFORMED)

"""Error classification for Notion API failures."""

from enum import Enum
from typing import Optional

RATE_LIMIT_STATUS = 429

# notion_client APIErrorCode values mapped to the HTTP status they come with
ERROR_CODE_STATUS = {
    "object_not_found": 404,
    "unauthorized": 401,
    "restricted_resource": 403,
    "rate_limited": RATE_LIMIT_STATUS,
}


def error_status(error: BaseException) -> Optional[int]:
    """
    Get the HTTP status of an API error.

    Uses the ``status`` attribute when present (APIResponseError and
    HTTPResponseError both carry it), otherwise maps the SDK error code.

    Args:
        error: Exception raised by an API call

    Returns:
        HTTP status code, or None if it can't be determined
    """
    status = getattr(error, "status", None)
    if isinstance(status, int):
        return status

    code = getattr(error, "code", None)
    if code is None:
        return None
    code = getattr(code, "value", code)
    if isinstance(code, int):
        return code
    return ERROR_CODE_STATUS.get(str(code))


def is_rate_limited(error: BaseException) -> bool:
    """Check whether an error signals that the caller must slow down."""
    if error_status(error) == RATE_LIMIT_STATUS:
        return True
    return "rate limit" in str(error).lower()


class RootFailureReason(str, Enum):
    """Why a root ID could not be resolved."""

    ACCESS_DENIED = "access_denied"
    NOT_FOUND = "not_found"
    OTHER = "other"

    @classmethod
    def from_status(cls, status: Optional[int]) -> "RootFailureReason":
        if status in (401, 403):
            return cls.ACCESS_DENIED
        if status == 404:
            return cls.NOT_FOUND
        return cls.OTHER


class RootResolutionError(Exception):
    """Raised when an ID resolves as neither a page nor a database."""

    def __init__(self, root_id: str, error: Optional[BaseException] = None):
        self.root_id = root_id
        self.error = error
        self.status = error_status(error) if error is not None else None
        self.reason = RootFailureReason.from_status(self.status)
        super().__init__(self.diagnostic)

    @property
    def diagnostic(self) -> str:
        """User-facing explanation of the failure."""
        if self.reason is RootFailureReason.ACCESS_DENIED:
            return "Integration lacks access or token invalid"
        if self.reason is RootFailureReason.NOT_FOUND:
            return "ID not found or no access"
        return str(self.error) if self.error is not None else "Unknown error"

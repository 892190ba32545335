from __future__ import annotations

from .errors import DeadlineExceeded, PermanentError


def is_client_error(status_code: int) -> bool:
    # 400..499 inclusive; everything else is handed back to the caller.
    return 399 < status_code < 500


def transient_classifier(exc: BaseException) -> bool:
    """Anything the transport raises is transient unless it is permanent or a deadline."""
    if isinstance(exc, PermanentError):
        return False
    if isinstance(exc, DeadlineExceeded):
        return False
    return True

from .core import execute, RetryPolicy
from .client import Client, ClientConfig, read_body
from .errors import (
    DeadlineExceeded,
    HTTPCallError,
    HttpopError,
    PermanentError,
    RetryExhaustedError,
)
from .defaults import build_client, default_retry_policy, default_waiter

# OTEL is imported lazily inside otel_runtime, so this works without the SDK.
from .otel_runtime import send_traced_optional

__all__ = [
    "execute",
    "RetryPolicy",
    "Client",
    "ClientConfig",
    "read_body",
    "DeadlineExceeded",
    "HTTPCallError",
    "HttpopError",
    "PermanentError",
    "RetryExhaustedError",
    "build_client",
    "default_retry_policy",
    "default_waiter",
    "send_traced_optional",
]

__version__ = "0.1.0"

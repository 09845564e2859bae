"""Error taxonomy shared by the audio pipeline and the AI service clients."""

from __future__ import annotations

import re
from typing import Optional

SNIPPET_LIMIT = 200


class CallsenseError(RuntimeError):
    """Base class for every error surfaced to callers."""

    transient = False


class DecodeError(CallsenseError):
    """The source audio could not be decoded."""


class SegmentationError(CallsenseError):
    """Segmentation produced (or would produce) an oversized segment."""


class ProviderHTTPError(Exception):
    """Raised by providers for a non-success HTTP response.

    Providers raise this untyped error; the service clients classify it.
    """

    def __init__(self, status_code: int, body: str = "") -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code
        self.body = body or ""


class ServiceError(CallsenseError):
    """An AI provider call failed."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimited(ServiceError):
    transient = True


class AuthError(ServiceError):
    pass


class PayloadRejected(ServiceError):
    pass


class ProviderError(ServiceError):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message, status_code)
        # 5xx are worth retrying, other statuses will not change on retry
        self.transient = status_code is not None and status_code >= 500


class ProviderTimeout(ServiceError):
    transient = True


class EmptyResult(ServiceError):
    pass


class ParseError(ServiceError):
    pass


def is_transient(exc: BaseException) -> bool:
    return bool(getattr(exc, "transient", False))


def snippet(text: str, limit: int = SNIPPET_LIMIT) -> str:
    """Collapse whitespace and cut ``text`` to at most ``limit`` characters."""

    collapsed = re.sub(r"\s+", " ", text or "").strip()
    if len(collapsed) <= limit:
        return collapsed
    return collapsed[: limit - 3].rstrip() + "..."


_PAYLOAD_HINTS = (
    "too large",
    "too long",
    "payload",
    "size",
    "exceeds",
    "base64",
    "encoding",
    "invalid audio",
    "unsupported audio",
)


def classify_http_error(error: ProviderHTTPError, action: str) -> ServiceError:
    """Map a provider HTTP failure to a typed :class:`ServiceError`."""

    status = error.status_code
    body = error.body.lower()
    if status in (429, 402):
        return RateLimited(
            "Rate limit or quota exceeded. Please try again later.", status_code=status
        )
    if status in (401, 403):
        return AuthError(
            "The AI provider rejected the credentials. Check the configured API key.",
            status_code=status,
        )
    if status == 413 or (status == 400 and any(hint in body for hint in _PAYLOAD_HINTS)):
        return PayloadRejected(
            "Audio encoding error: the provider rejected the audio payload. "
            "Re-upload the recording, or use a smaller or different format.",
            status_code=status,
        )
    detail = snippet(error.body)
    message = f"{action} failed: {status}"
    if detail:
        message = f"{message} - {detail}"
    return ProviderError(message, status_code=status)


__all__ = [
    "AuthError",
    "CallsenseError",
    "DecodeError",
    "EmptyResult",
    "ParseError",
    "PayloadRejected",
    "ProviderError",
    "ProviderHTTPError",
    "ProviderTimeout",
    "RateLimited",
    "SegmentationError",
    "ServiceError",
    "classify_http_error",
    "is_transient",
    "snippet",
]

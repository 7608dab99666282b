"""Normalized forge errors.

Every failure that leaves an adapter is one of five kinds, regardless of
which backend produced it:

* :class:`AuthenticationError` — bad / expired token or missing scope.
* :class:`NotFoundError` — repository, branch or pull request is absent.
* :class:`RateLimitError` — the backend is throttling us.
* :class:`ValidationError` — malformed input or a request the backend rejected.
* :class:`GenericError` — anything else, tagged with the operation in flight.

All five derive from :class:`ForgeError` so they can be raised and caught as
one family.  The set is closed: :data:`ForgeFailure` is the union callers
should ``match`` against.

Classification of native (``httpx``) failures is driven by
:data:`ERROR_RULES`, an ordered table.  Status codes are used when the
failure carries an HTTP response; otherwise the message text is searched.
Order matters because a message can contain several matchable substrings —
authentication and not-found are checked first.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal, NamedTuple, Union

import httpx

from gitforge.models import Provider

Resource = Literal["repository", "branch", "pull-request"]


# ---------------------------------------------------------------------------
# Error kinds
# ---------------------------------------------------------------------------


class ErrorKind(str, Enum):
    AUTHENTICATION = "authentication"
    NOT_FOUND = "not-found"
    VALIDATION = "validation"
    RATE_LIMIT = "rate-limit"
    GENERIC = "generic"


class ForgeError(Exception):
    """Common base for the five normalized error kinds."""

    kind: ErrorKind

    def __init__(self, provider: Provider, message: str) -> None:
        super().__init__(message)
        self.provider = provider

    @property
    def message(self) -> str:
        return str(self.args[0])


class AuthenticationError(ForgeError):
    kind = ErrorKind.AUTHENTICATION
    __match_args__ = ("provider", "message")


class NotFoundError(ForgeError):
    kind = ErrorKind.NOT_FOUND
    __match_args__ = ("provider", "resource", "identifier")

    def __init__(self, provider: Provider, resource: Resource, identifier: str) -> None:
        super().__init__(provider, f"{resource} not found: {identifier}")
        self.resource = resource
        self.identifier = identifier


class RateLimitError(ForgeError):
    kind = ErrorKind.RATE_LIMIT
    __match_args__ = ("provider", "retry_after")

    def __init__(self, provider: Provider, retry_after: int | None = None) -> None:
        detail = f" (retry after {retry_after}s)" if retry_after is not None else ""
        super().__init__(provider, f"{provider} rate limit exceeded{detail}")
        self.retry_after = retry_after


class ValidationError(ForgeError):
    kind = ErrorKind.VALIDATION
    __match_args__ = ("provider", "message", "field")

    def __init__(self, provider: Provider, message: str, field: str | None = None) -> None:
        super().__init__(provider, message)
        self.field = field


class GenericError(ForgeError):
    kind = ErrorKind.GENERIC
    __match_args__ = ("provider", "operation", "message")

    def __init__(
        self,
        provider: Provider,
        operation: str,
        message: str,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(provider, message)
        self.operation = operation
        self.cause = cause

    def __repr__(self) -> str:  # pragma: no cover
        return f"GenericError({self.provider!r}, {self.operation!r}, {self.message!r})"


ForgeFailure = Union[
    AuthenticationError,
    NotFoundError,
    RateLimitError,
    ValidationError,
    GenericError,
]


# ---------------------------------------------------------------------------
# Classification table
# ---------------------------------------------------------------------------


class ErrorRule(NamedTuple):
    kind: ErrorKind
    status_codes: frozenset[int]
    needles: tuple[str, ...]


ERROR_RULES: tuple[ErrorRule, ...] = (
    ErrorRule(ErrorKind.AUTHENTICATION, frozenset({401, 403}), ("401", "403", "unauthorized")),
    ErrorRule(ErrorKind.NOT_FOUND, frozenset({404}), ("404", "not found")),
    ErrorRule(ErrorKind.VALIDATION, frozenset({400, 422}), ("400", "422", "invalid")),
    ErrorRule(ErrorKind.RATE_LIMIT, frozenset({429}), ("429", "rate limit")),
)


def classify(status: int | None, message: str) -> ErrorKind:
    """Return the :class:`ErrorKind` for a native failure.

    Args:
        status:  HTTP status code, or ``None`` when the failure has no response.
        message: Native error text; only consulted when *status* is ``None``.
    """
    text = message.lower()
    for rule in ERROR_RULES:
        if status is not None:
            if status in rule.status_codes:
                return rule.kind
        elif any(needle in text for needle in rule.needles):
            return rule.kind
    return ErrorKind.GENERIC


def _retry_after(response: httpx.Response | None) -> int | None:
    if response is None:
        return None
    value = response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _response_message(response: httpx.Response) -> str:
    """Best-effort human message from an error response body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict):
        for key in ("message", "error", "error_description"):
            value = body.get(key)
            if value:
                return value if isinstance(value, str) else str(value)
    return response.text[:200]


def map_error(
    provider: Provider,
    exc: BaseException,
    operation: str,
    *,
    resource: Resource = "repository",
    identifier: str = "unknown",
) -> ForgeError:
    """Translate *exc* into one of the normalized error kinds.

    Errors that are already normalized are returned unchanged, so adapters can
    funnel every failure of an operation through this function.

    Args:
        provider:   Backend the failure came from.
        exc:        The native failure (usually an ``httpx`` exception).
        operation:  Logical operation name, e.g. ``"createBranch"``.
        resource:   Resource to report when the failure is a not-found.
        identifier: Identifier to report when the failure is a not-found.
    """
    if isinstance(exc, ForgeError):
        return exc

    response: httpx.Response | None = None
    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        status: int | None = response.status_code
        message = f"{status} {_response_message(response)}"
    else:
        status = None
        message = str(exc) or type(exc).__name__

    kind = classify(status, message)
    if kind is ErrorKind.AUTHENTICATION:
        return AuthenticationError(provider, message)
    if kind is ErrorKind.NOT_FOUND:
        return NotFoundError(provider, resource, identifier)
    if kind is ErrorKind.VALIDATION:
        return ValidationError(provider, message)
    if kind is ErrorKind.RATE_LIMIT:
        return RateLimitError(provider, _retry_after(response))
    return GenericError(provider, operation, message, cause=exc)


def is_not_found(exc: BaseException) -> bool:
    """True when *exc* is a native failure that classifies as not-found."""
    if isinstance(exc, NotFoundError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code == 404
    return False

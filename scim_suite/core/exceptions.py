"""Exceptions raised by the SCIM suite core.

Configuration and authentication errors abort the whole run. Everything that
derives from ``ResponseValidationError`` is an ``AssertionError`` so pytest
reports it as an ordinary test failure.
"""
from __future__ import annotations

from typing import Any, Iterable, Optional


class SuiteError(Exception):
    """Base exception for suite setup failures."""
    pass


class ConfigurationError(SuiteError):
    """Invalid or missing environment/endpoint selection."""
    pass


class AuthenticationError(SuiteError):
    """OAuth2 token exchange failed.

    Attributes:
        status_code: HTTP status returned by the token endpoint (None on transport errors)
        body: Raw response body, kept for diagnostics
        endpoint: Token URL that was called
    """

    def __init__(self, status_code: Optional[int], body: str, endpoint: str):
        self.status_code = status_code
        self.body = body
        self.endpoint = endpoint
        super().__init__(f"[{status_code}] {endpoint}: {body}")


# ─────────────────────────────────────────────────────────────────────────────
# Per-assertion failures
# ─────────────────────────────────────────────────────────────────────────────
class ResponseValidationError(AssertionError):
    """A response violated one of the validated contracts."""
    pass


class StatusMismatch(ResponseValidationError):
    def __init__(self, expected: int, actual: int, body: str = ""):
        self.expected = expected
        self.actual = actual
        self.body = body
        message = f"Expected status {expected}, got {actual}"
        if body:
            message = f"{message}: {body[:500]}"
        super().__init__(message)


class MalformedResponse(ResponseValidationError):
    def __init__(self, reason: str, body: str = ""):
        self.reason = reason
        self.body = body
        super().__init__(f"Invalid JSON response: {reason}")


class MissingField(ResponseValidationError):
    def __init__(self, context_label: str, missing: Iterable[str]):
        self.context_label = context_label
        self.missing = list(missing)
        super().__init__(f"{context_label} missing required fields: {', '.join(self.missing)}")


class TypeMismatch(ResponseValidationError):
    """Field has the wrong runtime type.

    ``field``/``expected``/``actual`` describe the first offending field;
    ``mismatches`` lists every offender as ``(field, expected, actual)``.
    """

    def __init__(self, field: str, expected: str, actual: str,
                 mismatches: Optional[list[tuple[str, str, str]]] = None):
        self.field = field
        self.expected = expected
        self.actual = actual
        self.mismatches = mismatches or [(field, expected, actual)]
        details = "; ".join(f"{f}: expected {e}, got {a}" for f, e, a in self.mismatches)
        super().__init__(f"Type validation failed: {details}")


class EnvelopeViolation(ResponseValidationError):
    def __init__(self, kind: str, unexpected: Iterable[str]):
        self.kind = kind
        self.unexpected = list(unexpected)
        super().__init__(
            f"SCIM {kind} envelope must not contain: {', '.join(self.unexpected)}"
        )


class SlowResponseError(ResponseValidationError):
    """Raised instead of the ``SlowResponse`` warning when strict timing is on."""

    def __init__(self, operation_label: str, elapsed_ms: float, threshold_ms: float):
        self.operation_label = operation_label
        self.elapsed_ms = elapsed_ms
        self.threshold_ms = threshold_ms
        super().__init__(
            f"{operation_label} took {elapsed_ms:.0f}ms (exceeds {threshold_ms:.0f}ms threshold)"
        )


class SlowResponse(UserWarning):
    """Soft timing failure: the response arrived after the threshold."""

    def __init__(self, operation_label: str, elapsed_ms: float, threshold_ms: float):
        self.operation_label = operation_label
        self.elapsed_ms = elapsed_ms
        self.threshold_ms = threshold_ms
        super().__init__(
            f"{operation_label} took {elapsed_ms:.0f}ms (exceeds {threshold_ms:.0f}ms threshold)"
        )


def describe_value_type(value: Any) -> str:
    """Return the JSON type name for ``value`` (``string``, ``number``...)."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, (list, tuple)):
        return "array"
    return type(value).__name__

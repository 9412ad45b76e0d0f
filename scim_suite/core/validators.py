"""Response validation helpers.

Each validator either returns normally or raises a ``ResponseValidationError``
subclass naming the violated contract. Response-time checks are soft: they warn
with ``SlowResponse`` unless strict mode is requested.
"""
from __future__ import annotations
import json
import logging
import time
import warnings
from typing import Any, Iterable, Mapping

from . import schemas
from .exceptions import (
    EnvelopeViolation,
    MalformedResponse,
    MissingField,
    ResponseValidationError,
    SlowResponse,
    SlowResponseError,
    StatusMismatch,
    TypeMismatch,
    describe_value_type,
)

logger = logging.getLogger(__name__)

SINGLE = "single"
LIST = "list"

LIST_ENVELOPE_FIELDS = ("schemas", "totalResults", "itemsPerPage", "startIndex", "Resources")
LIST_ONLY_FIELDS = ("totalResults", "Resources")

TOKEN_RESPONSE_FIELDS = ("access_token", "expires_in", "token_type", "scope")
MAX_TOKEN_LIFETIME = 86400

_JSON_TYPES = {"string", "boolean", "number", "object", "array"}


def validate_status(response: Any, expected_code: int = 200) -> None:
    """Assert the HTTP status code.

    Raises:
        StatusMismatch: If ``response.status_code`` differs from ``expected_code``
    """
    actual = response.status_code
    if actual != expected_code:
        raise StatusMismatch(expected_code, actual, getattr(response, "text", "") or "")
    logger.info(f"✅ Response status validation passed ({actual})")


def validate_json_body(response: Any) -> Any:
    """Parse the response body as JSON.

    Returns:
        The decoded body

    Raises:
        MalformedResponse: If the body is empty or not valid JSON
    """
    text = getattr(response, "text", "") or ""
    if not text.strip():
        raise MalformedResponse("empty body")
    try:
        return json.loads(text)
    except ValueError as exc:
        raise MalformedResponse(str(exc), text[:500]) from exc


def validate_scim_envelope(body: Mapping[str, Any], kind: str) -> None:
    """Check the SCIM message envelope.

    Args:
        body: Decoded response body
        kind: ``"single"`` for one resource, ``"list"`` for a ListResponse

    Raises:
        MissingField: Required envelope keys are absent
        TypeMismatch: ``schemas`` or ``Resources`` is not an array
        EnvelopeViolation: A single resource carries list-only keys
        ValueError: Unknown ``kind``
    """
    if kind not in (SINGLE, LIST):
        raise ValueError(f"Unknown envelope kind: {kind!r}")
    if not isinstance(body, Mapping):
        raise TypeMismatch("<body>", "object", describe_value_type(body))

    if kind == SINGLE:
        validate_required_fields(body, ["schemas"], "SCIM resource")
        validate_field_types(body, {"schemas": "array"})
        unexpected = [name for name in LIST_ONLY_FIELDS if name in body]
        if unexpected:
            raise EnvelopeViolation(SINGLE, unexpected)
        return

    validate_required_fields(body, LIST_ENVELOPE_FIELDS, "SCIM ListResponse")
    validate_field_types(body, {
        "schemas": "array",
        "totalResults": "number",
        "itemsPerPage": "number",
        "startIndex": "number",
        "Resources": "array",
    })


def validate_required_fields(
    body: Mapping[str, Any],
    field_names: Iterable[str],
    context_label: str = "Response",
) -> None:
    """Assert that every field is present and not null.

    Raises:
        MissingField: Lists every absent field
    """
    missing = [name for name in field_names if body.get(name) is None]
    if missing:
        raise MissingField(context_label, missing)
    logger.debug(f"All required fields present in {context_label}")


def validate_field_types(body: Mapping[str, Any], type_map: Mapping[str, str]) -> None:
    """Assert JSON runtime types (``string``, ``boolean``, ``number``, ``object``, ``array``).

    Fields absent from ``body`` are skipped; presence is checked by
    ``validate_required_fields``.

    Raises:
        TypeMismatch: For the first mismatching field (all listed in ``mismatches``)
        ValueError: A type name is not a JSON type
    """
    mismatches = []
    for name, expected in type_map.items():
        if expected not in _JSON_TYPES:
            raise ValueError(f"Unsupported type name for {name}: {expected!r}")
        if name not in body:
            continue
        actual = describe_value_type(body[name])
        if actual != expected:
            mismatches.append((name, expected, actual))
    if mismatches:
        field, expected, actual = mismatches[0]
        raise TypeMismatch(field, expected, actual, mismatches)


def validate_response_time(
    start_timestamp: float,
    threshold_ms: float = 2000,
    operation_label: str = "API call",
    strict: bool = False,
) -> float:
    """Measure elapsed wall-clock time since ``start_timestamp``.

    Args:
        start_timestamp: ``time.monotonic()`` value taken before the request
        threshold_ms: Acceptable latency
        operation_label: Name used in the warning
        strict: Raise ``SlowResponseError`` instead of warning

    Returns:
        Elapsed milliseconds
    """
    elapsed_ms = (time.monotonic() - start_timestamp) * 1000
    if elapsed_ms <= threshold_ms:
        logger.info(f"⏱️  {operation_label}: {elapsed_ms:.0f}ms (< {threshold_ms:.0f}ms)")
        return elapsed_ms

    if strict:
        raise SlowResponseError(operation_label, elapsed_ms, threshold_ms)
    logger.warning(
        f"⚠️  {operation_label} took {elapsed_ms:.0f}ms (exceeds {threshold_ms:.0f}ms threshold)"
    )
    warnings.warn(SlowResponse(operation_label, elapsed_ms, threshold_ms), stacklevel=2)
    return elapsed_ms


def validate_resource_type(body: Mapping[str, Any], expected: str) -> None:
    """Assert ``meta.resourceType``."""
    meta = body.get("meta")
    if not isinstance(meta, Mapping):
        raise MissingField(f"{expected} resource", ["meta"])
    actual = meta.get("resourceType")
    if actual != expected:
        raise ResponseValidationError(f"Expected resourceType {expected}, got {actual}")


def validate_schema_urn(body: Mapping[str, Any], urn: str) -> None:
    declared = body.get("schemas") or []
    if urn not in declared:
        raise ResponseValidationError(f"Schema {urn} not declared in {declared}")


def validate_content_type(response: Any) -> str:
    """Assert a JSON or SCIM+JSON ``Content-Type`` and return it."""
    content_type = response.headers.get("Content-Type", "")
    media_type = content_type.split(";", 1)[0].strip().lower()
    if media_type not in schemas.ACCEPTED_MEDIA_TYPES:
        raise ResponseValidationError(f"Unexpected Content-Type: {content_type or '<none>'}")
    return content_type


def validate_scim_error(body: Mapping[str, Any], status: int) -> None:
    """Assert an RFC 7644 §3.12 error body for ``status``."""
    validate_schema_urn(body, schemas.ERROR)
    declared = body.get("status")
    if declared is None or str(declared) != str(status):
        raise ResponseValidationError(f"SCIM error status {declared!r} does not match HTTP {status}")


# ─────────────────────────────────────────────────────────────────────────────
# OAuth2 token endpoint responses
# ─────────────────────────────────────────────────────────────────────────────
def validate_token_response(body: Mapping[str, Any]) -> None:
    """Validate a successful client-credentials token response.

    Checks the standard fields, a three-segment JWT access token, and a
    plausible ``expires_in`` (between 1 second and 24 hours).
    """
    missing = [name for name in TOKEN_RESPONSE_FIELDS if name not in body]
    if missing:
        raise MissingField("Token response", missing)

    token = body["access_token"]
    if not isinstance(token, str) or len(token.split(".")) != 3:
        raise ResponseValidationError("Access token does not appear to be a valid JWT structure")

    expires_in = body["expires_in"]
    if describe_value_type(expires_in) != "number" or not 0 < expires_in <= MAX_TOKEN_LIFETIME:
        raise ResponseValidationError(f"Token expiration time is unreasonable: {expires_in} seconds")


def validate_oauth_error_response(body: Mapping[str, Any]) -> None:
    if not body.get("error"):
        raise MissingField("OAuth error response", ["error"])

"""Request bodies for SCIM create/update/search calls."""
from __future__ import annotations
import secrets
import time
from typing import Any, Dict, Iterable, Optional

from . import schemas

# Accounts the destructive tests must never delete
PROTECTED_USERNAMES = frozenset({"ADMINISTRATOR", "MANAGER", "ADMIN"})


def unique_name(prefix: str) -> str:
    """Timestamp-suffixed name, unique across parallel workers.

    Example:
        >>> unique_name("testUser")  # doctest: +SKIP
        'testUser_1729180000123_4f2a'
    """
    return f"{prefix}_{int(time.time() * 1000)}_{secrets.token_hex(2)}"


def is_protected_username(user_name: str) -> bool:
    return user_name.strip().upper() in PROTECTED_USERNAMES


def user_payload(
    user_name: str,
    formatted: Optional[str] = None,
    active: bool = True,
    group_ids: Iterable[str] = (),
    emails: Iterable[str] = (),
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "schemas": [schemas.USER],
        "active": active,
        "userName": user_name,
        "name": {"formatted": formatted or f"Test User {user_name}"},
    }
    groups = [{"value": str(group_id)} for group_id in group_ids]
    if groups:
        payload["groups"] = groups
    addresses = [{"value": address, "primary": index == 0} for index, address in enumerate(emails)]
    if addresses:
        payload["emails"] = addresses
    return payload


def group_payload(display_name: str, member_ids: Iterable[str] = ()) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "schemas": [schemas.GROUP],
        "displayName": display_name,
    }
    members = [{"value": str(member_id)} for member_id in member_ids]
    if members:
        payload["members"] = members
    return payload


def patch_operation(op: str, path: Optional[str] = None, value: Any = None) -> Dict[str, Any]:
    """Single PatchOp operation (RFC 7644 §3.5.2)."""
    op = op.lower()
    if op not in {"add", "replace", "remove"}:
        raise ValueError(f"Unsupported patch op: {op!r}")
    operation: Dict[str, Any] = {"op": op}
    if path:
        operation["path"] = path
    if value is not None:
        operation["value"] = value
    elif op != "remove":
        raise ValueError(f"'{op}' operations require a value")
    return operation


def patch_payload(*operations: Dict[str, Any]) -> Dict[str, Any]:
    if not operations:
        raise ValueError("PatchOp requires at least one operation")
    return {"schemas": [schemas.PATCH_OP], "Operations": list(operations)}


def search_request(
    filter: str,
    start_index: Optional[int] = None,
    count: Optional[int] = None,
    attributes: Optional[Iterable[str]] = None,
    excluded_attributes: Optional[Iterable[str]] = None,
) -> Dict[str, Any]:
    """SearchRequest body for ``POST /.search``."""
    body: Dict[str, Any] = {"schemas": [schemas.SEARCH_REQUEST], "filter": filter}
    if start_index is not None:
        body["startIndex"] = start_index
    if count is not None:
        body["count"] = count
    if attributes:
        body["attributes"] = list(attributes)
    if excluded_attributes:
        body["excludedAttributes"] = list(excluded_attributes)
    return body

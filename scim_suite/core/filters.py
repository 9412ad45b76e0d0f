"""SCIM filter expressions used by the user search tests.

OEM deployments are multi-tenant: every user lookup must be scoped to the
configured institution, otherwise the same username can match across tenants.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

from .exceptions import ConfigurationError

if TYPE_CHECKING:
    from scim_suite.config.settings import EnvironmentProfile


def quote_filter_value(value: str) -> str:
    """Render ``value`` as a SCIM filter string literal (RFC 7644 §3.4.2.2)."""
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def build_user_filter(user_name: str, profile: EnvironmentProfile) -> str:
    """Build the ``userName`` filter for the active environment.

    Args:
        user_name: Username to match
        profile: Resolved environment profile

    Returns:
        ``userName eq "<value>"`` on Non-OEM, with an
        ``and institutionid eq "<id>"`` clause on OEM

    Raises:
        ConfigurationError: If the profile is OEM and has no institution id
    """
    expression = f"userName eq {quote_filter_value(user_name)}"
    if not profile.is_oem:
        return expression

    institution_id = (profile.institution_id or "").strip()
    if not institution_id:
        raise ConfigurationError(
            "OEM environment requires INSTITUTION_ID for user search filters"
        )
    return f"{expression} and institutionid eq {quote_filter_value(institution_id)}"


def build_id_filter(*ids: object) -> str:
    """``id eq "a" or id eq "b"`` for one or more resource ids."""
    if not ids:
        raise ValueError("At least one id is required")
    return " or ".join(f"id eq {quote_filter_value(str(value))}" for value in ids)

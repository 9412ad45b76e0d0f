"""Endpoint path builder for the two SCIM routing styles.

The service is reachable either directly (``/obscim/v2``) or proxied through the
API Server (``/ApiServer/onbase/SCIM/v2``). Every collection path is
``prefix(endpoint_type) + suffix(resource)``.
"""
from __future__ import annotations

from enum import Enum
from typing import Mapping, Optional, Union

from .exceptions import ConfigurationError


class EndpointType(str, Enum):
    SCIM = "scim"
    APISERVER = "apiserver"


class Resource(str, Enum):
    USERS = "users"
    GROUPS = "groups"
    SCHEMAS = "schemas"
    RESOURCE_TYPES = "resourceTypes"
    SERVICE_PROVIDER_CONFIG = "serviceProviderConfig"
    USER_SEARCH = "userSearch"
    GROUP_SEARCH = "groupSearch"


DEFAULT_PREFIXES: Mapping[EndpointType, str] = {
    EndpointType.SCIM: "/obscim/v2",
    EndpointType.APISERVER: "/ApiServer/onbase/SCIM/v2",
}

RESOURCE_SUFFIXES: Mapping[Resource, str] = {
    Resource.USERS: "/Users",
    Resource.GROUPS: "/Groups",
    Resource.SCHEMAS: "/Schemas",
    Resource.RESOURCE_TYPES: "/ResourceTypes",
    Resource.SERVICE_PROVIDER_CONFIG: "/ServiceProviderConfig",
    Resource.USER_SEARCH: "/Users/.search",
    Resource.GROUP_SEARCH: "/Groups/.search",
}

# Metadata endpoints exposed at the server root (SCIM v4.0.0 layout)
ROOT_METADATA_RESOURCES = frozenset({
    Resource.SCHEMAS,
    Resource.RESOURCE_TYPES,
    Resource.SERVICE_PROVIDER_CONFIG,
})


def parse_endpoint_type(raw: Union[str, EndpointType, None]) -> EndpointType:
    """Coerce ``raw`` into an ``EndpointType``.

    Args:
        raw: ``EndpointType`` member or its string value (case-insensitive)

    Returns:
        The matching EndpointType

    Raises:
        ConfigurationError: If the value is empty or not a known endpoint type
    """
    if isinstance(raw, EndpointType):
        return raw
    normalized = (raw or "").strip().lower()
    try:
        return EndpointType(normalized)
    except ValueError:
        allowed = ", ".join(member.value for member in EndpointType)
        raise ConfigurationError(
            f"Invalid API_ENDPOINT_TYPE: {raw!r}. Must be one of: {allowed}"
        ) from None


def parse_resource(raw: Union[str, Resource]) -> Resource:
    if isinstance(raw, Resource):
        return raw
    try:
        return Resource(raw)
    except ValueError:
        allowed = ", ".join(member.value for member in Resource)
        raise ConfigurationError(f"Unknown SCIM resource: {raw!r}. Must be one of: {allowed}") from None


def endpoint_prefix(
    endpoint_type: Union[str, EndpointType],
    prefixes: Optional[Mapping[EndpointType, str]] = None,
) -> str:
    """Return the base path for ``endpoint_type``."""
    kind = parse_endpoint_type(endpoint_type)
    table = prefixes or DEFAULT_PREFIXES
    prefix = table.get(kind)
    if not prefix:
        raise ConfigurationError(f"Endpoint path not configured for type: {kind.value}")
    return prefix.rstrip("/")


def build_path(
    resource: Union[str, Resource],
    endpoint_type: Union[str, EndpointType],
    prefixes: Optional[Mapping[EndpointType, str]] = None,
) -> str:
    """Build the collection path for a SCIM resource.

    Example:
        >>> build_path("users", "scim")
        '/obscim/v2/Users'
        >>> build_path("users", "apiserver")
        '/ApiServer/onbase/SCIM/v2/Users'
    """
    return endpoint_prefix(endpoint_type, prefixes) + RESOURCE_SUFFIXES[parse_resource(resource)]


def resource_path(
    resource: Union[str, Resource],
    endpoint_type: Union[str, EndpointType],
    *segments: object,
    prefixes: Optional[Mapping[EndpointType, str]] = None,
) -> str:
    """Collection path with extra path segments, e.g. ``/obscim/v2/Users/106``."""
    path = build_path(resource, endpoint_type, prefixes)
    for segment in segments:
        path = f"{path}/{str(segment).strip('/')}"
    return path


def root_metadata_path(resource: Union[str, Resource]) -> str:
    """Root-level metadata path (``/Schemas``, ``/ResourceTypes``, ``/ServiceProviderConfig``)."""
    kind = parse_resource(resource)
    if kind not in ROOT_METADATA_RESOURCES:
        raise ConfigurationError(f"{kind.value} is not exposed at the server root")
    return RESOURCE_SUFFIXES[kind]


def healthcheck_path(endpoint_type: Union[str, EndpointType]) -> str:
    if parse_endpoint_type(endpoint_type) is EndpointType.SCIM:
        return "/obscim/healthcheck"
    return "/healthcheck"


def diagnostics_path(endpoint_type: Union[str, EndpointType]) -> str:
    if parse_endpoint_type(endpoint_type) is EndpointType.SCIM:
        return "/obscim/diagnostics/details"
    return "/diagnostics/details"


def custom_path(endpoint: str) -> str:
    return endpoint if endpoint.startswith("/") else f"/{endpoint}"

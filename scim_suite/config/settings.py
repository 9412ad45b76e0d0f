"""Settings loader: environment profile resolution and suite configuration.

``resolve_environment`` picks the OEM or Non-OEM profile from the ``OEM``
variable. ``load_settings`` turns the process environment (plus an optional
``.env`` file) into a single immutable ``SuiteConfig`` that the fixtures thread
through the client, token provider and database helper.
"""
from __future__ import annotations
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Mapping, Optional

from dotenv import dotenv_values, find_dotenv

from scim_suite.core.endpoints import (
    DEFAULT_PREFIXES,
    EndpointType,
    endpoint_prefix,
    parse_endpoint_type,
)
from scim_suite.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

OEM_TRUTHY_VALUES = frozenset({"true", "1", "yes", "oem"})
OEM = "OEM"
NON_OEM = "NonOEM"


@dataclass(frozen=True)
class EnvironmentProfile:
    """Deployment-specific endpoints and database parameters."""
    name: str
    api_base_url: str
    oauth_base_url: str
    db_server: str
    db_name: str
    db_user: str
    db_password: str = field(default="", repr=False)
    institution_id: Optional[str] = None

    @property
    def is_oem(self) -> bool:
        return self.name == OEM


ENVIRONMENT_PROFILES: Mapping[str, EnvironmentProfile] = {
    "oem": EnvironmentProfile(
        name=OEM,
        api_base_url="https://rdv-009275.hylandqa.net",
        oauth_base_url="https://rdv-009275.hylandqa.net/identityservice",
        db_server="RDV-009275\\QASQL17LOCAL",
        db_name="LocalOBTestingTwo",
        db_user="hsi",
        institution_id="103",
    ),
    "nonOem": EnvironmentProfile(
        name=NON_OEM,
        api_base_url="https://rdv-010318.hylandqa.net",
        oauth_base_url="https://rdv-010318.hylandqa.net/identityservice",
        db_server="RDV-010318\\LOCALSQLSERVER22",
        db_name="LocalOBTesting",
        db_user="hsi",
    ),
}

# env var -> EnvironmentProfile field; API and OAuth hosts are never overridden
_PROFILE_OVERRIDES = {
    "DB_SERVER": "db_server",
    "DB_NAME": "db_name",
    "DB_USER": "db_user",
    "DB_PASSWORD": "db_password",
}


def is_oem_value(raw: Optional[str]) -> bool:
    """Return True when an ``OEM`` variable value selects the OEM profile."""
    return (raw or "").strip().lower() in OEM_TRUTHY_VALUES


def resolve_environment(env: Optional[Mapping[str, str]] = None) -> EnvironmentProfile:
    """Select the environment profile for this run.

    ``OEM`` set to any of ``true``, ``1``, ``yes`` or ``oem`` (any casing) selects
    the OEM profile; everything else, including absence, selects Non-OEM.
    Explicitly set database variables (``DB_SERVER``, ``DB_NAME``, ...) replace
    the matching profile fields. ``API_BASE_URL`` and ``OAUTH_BASE_URL`` are
    ignored: the profile owns both hosts.

    Args:
        env: Variables to read (defaults to ``os.environ``)

    Returns:
        The resolved, immutable EnvironmentProfile
    """
    env = os.environ if env is None else env
    key = "oem" if is_oem_value(env.get("OEM")) else "nonOem"
    profile = ENVIRONMENT_PROFILES[key]

    overrides = {
        attr: env[var]
        for var, attr in _PROFILE_OVERRIDES.items()
        if env.get(var)
    }
    if profile.is_oem and env.get("INSTITUTION_ID"):
        overrides["institution_id"] = env["INSTITUTION_ID"].strip()
    if overrides:
        profile = replace(profile, **overrides)
    return profile


@dataclass(frozen=True)
class OAuthSettings:
    """Client-credentials parameters for the identity service token endpoint."""
    token_endpoint: str = "/connect/token"
    client_id: str = ""
    client_secret: str = field(default="", repr=False)
    scope: str = "idpadmin"
    grant_type: str = "client_credentials"


@dataclass(frozen=True)
class SuiteConfig:
    """Configuration container produced once per test run."""
    profile: EnvironmentProfile
    endpoint_type: EndpointType = EndpointType.SCIM
    oauth: OAuthSettings = field(default_factory=OAuthSettings)
    endpoint_prefixes: Mapping[EndpointType, str] = field(default_factory=lambda: dict(DEFAULT_PREFIXES))

    # Timeouts (seconds)
    api_timeout: float = 30.0
    request_timeout: float = 10.0

    # Response timing policy
    response_time_threshold_ms: float = 2000.0
    strict_response_time: bool = False

    # Target hosts use self-signed certificates
    verify_tls: bool = False

    # SQL Server
    db_driver: str = "ODBC Driver 18 for SQL Server"
    db_encrypt: bool = False
    db_trust_server_certificate: bool = True
    db_checks_enabled: bool = False

    @property
    def api_base_url(self) -> str:
        return self.profile.api_base_url.rstrip("/")

    @property
    def token_url(self) -> str:
        return f"{self.profile.oauth_base_url.rstrip('/')}{self.oauth.token_endpoint}"

    @property
    def endpoint_path(self) -> str:
        return endpoint_prefix(self.endpoint_type, self.endpoint_prefixes)

    @property
    def scim_base_url(self) -> str:
        return f"{self.api_base_url}{self.endpoint_path}"

    def missing_required(self) -> list[str]:
        """Names of required settings that are not configured."""
        missing = []
        if not self.oauth.client_id:
            missing.append("CLIENT_ID")
        if not self.oauth.client_secret:
            missing.append("CLIENT_SECRET")
        if not self.oauth.token_endpoint:
            missing.append("OAUTH_TOKEN_ENDPOINT")
        return missing

    def ensure_complete(self) -> None:
        """Raise ConfigurationError naming every missing required setting."""
        missing = self.missing_required()
        if missing:
            raise ConfigurationError(f"Missing required settings: {', '.join(missing)}")

    def describe(self) -> dict[str, str]:
        """Log-safe summary of the active configuration."""
        return {
            "environment": self.profile.name,
            "endpoint_type": self.endpoint_type.value,
            "api_base_url": self.api_base_url,
            "endpoint_path": self.endpoint_path,
            "scim_base_url": self.scim_base_url,
            "token_url": self.token_url,
            "client_id": self.oauth.client_id or "[NOT SET]",
            "client_secret": "[SET]" if self.oauth.client_secret else "[NOT SET]",
            "scope": self.oauth.scope,
            "database": f"{self.profile.db_server}\\{self.profile.db_name}",
            "institution_id": self.profile.institution_id or "N/A",
        }


def _first(env: Mapping[str, str], *names: str, default: str = "") -> str:
    """Return the first non-empty value among ``names``."""
    for name in names:
        value = env.get(name)
        if value:
            return value
    return default


def _flag(env: Mapping[str, str], name: str, default: bool) -> bool:
    value = env.get(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in {"true", "1", "yes", "on"}


def _millis(env: Mapping[str, str], name: str, default_ms: int) -> float:
    raw = env.get(name)
    if not raw:
        return default_ms / 1000
    try:
        return int(raw) / 1000
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer number of milliseconds, got {raw!r}") from None


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be numeric, got {raw!r}") from None


def load_environment(dotenv_path: Optional[str | Path] = None) -> dict[str, str]:
    """Merge ``.env`` values under the real process environment.

    Real environment variables always win over the dotenv file.
    """
    path = dotenv_path if dotenv_path is not None else find_dotenv(usecwd=True)
    merged: dict[str, str] = {}
    if path and Path(path).is_file():
        merged.update({k: v for k, v in dotenv_values(path).items() if v is not None})
        logger.debug(f"Loaded dotenv file {path}")
    merged.update(os.environ)
    return merged


def load_settings(
    env: Optional[Mapping[str, str]] = None,
    dotenv_path: Optional[str | Path] = None,
) -> SuiteConfig:
    """Build the suite configuration.

    Args:
        env: Explicit variables (skips dotenv/process lookup; used by tests)
        dotenv_path: Dotenv file to merge under the process environment

    Returns:
        SuiteConfig for this run

    Raises:
        ConfigurationError: If the endpoint type or a numeric setting is invalid
    """
    if env is None:
        env = load_environment(dotenv_path)

    profile = resolve_environment(env)
    endpoint_type = parse_endpoint_type(
        _first(env, "ENDPOINT_TYPE", "API_ENDPOINT_TYPE", default=EndpointType.SCIM.value)
    )

    prefixes = dict(DEFAULT_PREFIXES)
    if env.get("API_SCIM_ENDPOINT"):
        prefixes[EndpointType.SCIM] = env["API_SCIM_ENDPOINT"]
    if env.get("API_APISERVER_ENDPOINT"):
        prefixes[EndpointType.APISERVER] = env["API_APISERVER_ENDPOINT"]
    endpoint_prefix(endpoint_type, prefixes)

    oauth = OAuthSettings(
        token_endpoint=_first(env, "OAUTH_TOKEN_ENDPOINT", default="/connect/token"),
        client_id=_first(env, "CLIENT_ID", "OAUTH_CLIENT_ID"),
        client_secret=_first(env, "CLIENT_SECRET", "OAUTH_CLIENT_SECRET"),
        scope=_first(env, "DEFAULT_SCOPE", default="idpadmin"),
        grant_type=_first(env, "DEFAULT_GRANT_TYPE", default="client_credentials"),
    )

    return SuiteConfig(
        profile=profile,
        endpoint_type=endpoint_type,
        oauth=oauth,
        endpoint_prefixes=prefixes,
        api_timeout=_millis(env, "API_TIMEOUT", 30000),
        request_timeout=_millis(env, "REQUEST_TIMEOUT", 10000),
        response_time_threshold_ms=_float(env, "RESPONSE_TIME_THRESHOLD_MS", 2000.0),
        strict_response_time=_flag(env, "STRICT_RESPONSE_TIME", False),
        verify_tls=_flag(env, "VERIFY_TLS", False),
        db_driver=_first(env, "DB_DRIVER", default="ODBC Driver 18 for SQL Server"),
        db_encrypt=_flag(env, "DB_ENCRYPT", False),
        db_trust_server_certificate=_flag(env, "DB_TRUST_SERVER_CERTIFICATE", True),
        db_checks_enabled=_flag(env, "SCIM_DB_CHECKS", False),
    )

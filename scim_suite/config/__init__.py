"""Configuration module for the SCIM suite."""
from .settings import (
    EnvironmentProfile,
    OAuthSettings,
    SuiteConfig,
    is_oem_value,
    load_settings,
    resolve_environment,
)

__all__ = [
    "EnvironmentProfile",
    "OAuthSettings",
    "SuiteConfig",
    "is_oem_value",
    "load_settings",
    "resolve_environment",
]

"""Fixtures for the live SCIM suite.

Configuration is resolved once per session. Missing client credentials,
invalid configuration or a failed token exchange abort the run before any test
executes.
"""
import logging
import pathlib
import time

import pytest

from scim_suite.config.settings import load_settings
from scim_suite.core.client import ScimClient
from scim_suite.core.database import UserAccountStore
from scim_suite.core.endpoints import Resource
from scim_suite.core.exceptions import AuthenticationError, ConfigurationError
from scim_suite.core.oauth import TokenProvider
from scim_suite.core.validators import validate_response_time

logger = logging.getLogger(__name__)

HERE = pathlib.Path(__file__).resolve().parent

# Seeded USER1 differs per environment; group 1 is MANAGER on both
KNOWN_USER_IDS = {"OEM": "101", "NonOEM": "143"}
KNOWN_GROUP_ID = "1"


def _live_items(items):
    return [item for item in items if HERE in item.path.parents]


def pytest_collection_modifyitems(config, items):
    live_items = _live_items(items)
    if not live_items:
        return

    try:
        suite_config = load_settings()
    except ConfigurationError:
        # Reported by pytest_collection_finish
        return

    skip_oem = pytest.mark.skip(reason="Not supported in OEM environment")
    skip_non_oem = pytest.mark.skip(reason="OEM-only test")

    for item in live_items:
        item.add_marker(pytest.mark.integration)
        if suite_config.profile.is_oem and item.get_closest_marker("non_oem_only"):
            item.add_marker(skip_oem)
        elif not suite_config.profile.is_oem and item.get_closest_marker("oem_only"):
            item.add_marker(skip_non_oem)


def pytest_collection_finish(session):
    """Abort before any test runs when selected live tests cannot be configured."""
    if not _live_items(session.items):
        return
    try:
        load_settings().ensure_complete()
    except ConfigurationError as exc:
        pytest.exit(f"Configuration error: {exc}", returncode=2)


# ─────────────────────────────────────────────────────────────────────────────
# Session fixtures
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(scope="session")
def suite_config():
    try:
        config = load_settings()
    except ConfigurationError as exc:
        pytest.exit(f"Configuration error: {exc}", returncode=2)

    logger.info(f"🏢 Environment: {config.profile.name}")
    logger.info(f"🔧 Endpoint type: {config.endpoint_type.value.upper()} ({config.endpoint_path})")
    logger.info(f"🌐 API base URL: {config.api_base_url}")
    return config


@pytest.fixture(scope="session")
def token_provider(suite_config):
    provider = TokenProvider(suite_config)
    try:
        provider.get_token()
    except AuthenticationError as exc:
        pytest.exit(f"Authentication failed: {exc}", returncode=3)
    return provider


@pytest.fixture(scope="session")
def scim_client(suite_config, token_provider):
    with ScimClient(suite_config, token_provider) as client:
        yield client


@pytest.fixture(scope="session")
def user_store(suite_config):
    if not suite_config.db_checks_enabled:
        pytest.skip("Database checks disabled (set SCIM_DB_CHECKS=true)")
    store = UserAccountStore(suite_config)
    yield store
    store.close()


@pytest.fixture(scope="session")
def known_user_id(suite_config):
    return KNOWN_USER_IDS[suite_config.profile.name]


@pytest.fixture(scope="session")
def known_group_id():
    return KNOWN_GROUP_ID


# ─────────────────────────────────────────────────────────────────────────────
# Per-test helpers
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture
def timed(suite_config):
    """Call ``timed(label, fn, *args, **kwargs)`` and apply the response-time policy."""

    def _timed(label, fn, *args, **kwargs):
        start = time.monotonic()
        resp = fn(*args, **kwargs)
        validate_response_time(
            start,
            threshold_ms=suite_config.response_time_threshold_ms,
            operation_label=label,
            strict=suite_config.strict_response_time,
        )
        return resp

    return _timed


@pytest.fixture
def created_users(scim_client):
    """Collect ids of users created by a test; deleted afterwards."""
    ids = []
    yield ids
    for user_id in ids:
        resp = scim_client.delete(scim_client.path(Resource.USERS, user_id))
        logger.info(f"🧹 Cleanup user {user_id}: {resp.status_code}")


@pytest.fixture
def created_groups(scim_client):
    ids = []
    yield ids
    for group_id in ids:
        resp = scim_client.delete(scim_client.path(Resource.GROUPS, group_id))
        logger.info(f"🧹 Cleanup group {group_id}: {resp.status_code}")

"""Pytest shared fixtures for the SCIM suite."""
import json
import pathlib
import sys
from typing import Optional

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from scim_suite.config.settings import ENVIRONMENT_PROFILES, OAuthSettings, SuiteConfig
from scim_suite.core.endpoints import EndpointType


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_network(monkeypatch, request):
    """
    Prevent unit tests from hitting the live service.

    Integration tests are explicitly marked with @pytest.mark.integration and
    are allowed to perform real HTTP calls by skipping this fixture.
    """
    if request.node.get_closest_marker("integration"):
        return

    def _refuse(self, method, url, *args, **kwargs):
        raise RuntimeError(f"Unexpected HTTP {method} in unit test: {url}")

    monkeypatch.setattr(requests.Session, "request", _refuse)


# ─────────────────────────────────────────────────────────────────────────────
# HTTP stubs
# ─────────────────────────────────────────────────────────────────────────────
class StubResponse:
    """Minimal stand-in for ``requests.Response``."""

    def __init__(
        self,
        payload=None,
        status_code: int = 200,
        text: Optional[str] = None,
        headers: Optional[dict] = None,
    ):
        self.status_code = status_code
        if text is None:
            text = json.dumps(payload) if payload is not None else ""
        self.text = text
        self.headers = CaseInsensitiveDict(headers or {"Content-Type": "application/scim+json"})

    def json(self):
        return json.loads(self.text)


class RecordingSession:
    """Fake ``requests.Session`` returning queued responses and recording calls."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []
        self.verify = True
        self.closed = False

    def _next(self):
        if not self.responses:
            raise AssertionError("No stubbed response left")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        return self._next()

    def post(self, url, **kwargs):
        self.calls.append(("POST", url, kwargs))
        return self._next()

    def close(self):
        self.closed = True


@pytest.fixture
def stub_response():
    return StubResponse


@pytest.fixture
def recording_session():
    return RecordingSession


# ─────────────────────────────────────────────────────────────────────────────
# Configuration helpers
# ─────────────────────────────────────────────────────────────────────────────
def make_config(oem: bool = False, endpoint_type: EndpointType = EndpointType.SCIM, **overrides) -> SuiteConfig:
    profile = ENVIRONMENT_PROFILES["oem" if oem else "nonOem"]
    base = dict(
        profile=profile,
        endpoint_type=endpoint_type,
        oauth=OAuthSettings(client_id="suite-client", client_secret="suite-secret"),
    )
    base.update(overrides)
    return SuiteConfig(**base)


@pytest.fixture
def config_factory():
    return make_config


@pytest.fixture
def non_oem_config():
    return make_config()


@pytest.fixture
def oem_config():
    return make_config(oem=True)


# ─────────────────────────────────────────────────────────────────────────────
# Pytest Configuration
# ─────────────────────────────────────────────────────────────────────────────
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: live tests against the SCIM service (require CLIENT_ID/CLIENT_SECRET)"
    )
    config.addinivalue_line(
        "markers", "database: reads or writes the environment database (require SCIM_DB_CHECKS=true)"
    )
    config.addinivalue_line("markers", "oem_only: runs only when OEM is enabled")
    config.addinivalue_line("markers", "non_oem_only: runs only when OEM is disabled")

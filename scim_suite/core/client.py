"""HTTP client for the SCIM service under test.

Resolves paths through the endpoint builder and injects the cached bearer
token. Unlike a production client it never raises on non-2xx responses: the
tests assert on status codes themselves.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, Optional, Union

import requests
import urllib3

from . import schemas
from .endpoints import Resource, parse_resource, resource_path
from .filters import build_user_filter
from .oauth import TokenProvider
from .payloads import search_request

logger = logging.getLogger(__name__)

USER_AGENT = "SCIM-API-Tests/1.0"

_SEARCH_RESOURCES = {
    Resource.USERS: Resource.USER_SEARCH,
    Resource.GROUPS: Resource.GROUP_SEARCH,
}


class ScimClient:
    """SCIM API client bound to one environment and endpoint type.

    Usage:
        with ScimClient(config, TokenProvider(config)) as client:
            resp = client.get(client.path("users", 106))
    """

    def __init__(self, config, token_provider: TokenProvider, session: Optional[requests.Session] = None):
        self.config = config
        self.token_provider = token_provider
        self.session = session or requests.Session()
        self.session.verify = config.verify_tls
        if not config.verify_tls:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    def __enter__(self) -> "ScimClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.session.close()

    # -- Paths ---------------------------------------------------------------

    def path(self, resource: Union[str, Resource], *segments: object) -> str:
        """Collection or member path for the active endpoint type."""
        return resource_path(
            resource,
            self.config.endpoint_type,
            *segments,
            prefixes=self.config.endpoint_prefixes,
        )

    def url(self, path: str) -> str:
        return f"{self.config.api_base_url}{path}"

    # -- Requests ------------------------------------------------------------

    def _build_headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        token = self.token_provider.get_token()
        headers = {
            "Authorization": token.authorization_header,
            "Accept": f"{schemas.SCIM_MEDIA_TYPE}, {schemas.JSON_MEDIA_TYPE}",
            "Content-Type": schemas.SCIM_MEDIA_TYPE,
            "User-Agent": USER_AGENT,
        }
        if extra:
            headers.update(extra)
        return headers

    def request(
        self,
        method: str,
        path: str,
        json: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> requests.Response:
        """Send a request to ``api_base_url + path``.

        Raises:
            requests.Timeout: If the call exceeds ``api_timeout``
            AuthenticationError: If a token cannot be acquired
        """
        logger.info(f"🌐 {method.upper()} {path}")
        resp = self.session.request(
            method.upper(),
            self.url(path),
            json=json,
            params=params,
            headers=self._build_headers(headers),
            timeout=self.config.api_timeout,
        )
        logger.info(f"{method.upper()} {path} -> {resp.status_code}")
        return resp

    def get(self, path: str, params: Optional[Dict[str, Any]] = None, **kwargs) -> requests.Response:
        return self.request("GET", path, params=params, **kwargs)

    def post(self, path: str, json: Optional[Any] = None, **kwargs) -> requests.Response:
        return self.request("POST", path, json=json, **kwargs)

    def put(self, path: str, json: Optional[Any] = None, **kwargs) -> requests.Response:
        return self.request("PUT", path, json=json, **kwargs)

    def patch(self, path: str, json: Optional[Any] = None, **kwargs) -> requests.Response:
        return self.request("PATCH", path, json=json, **kwargs)

    def delete(self, path: str, **kwargs) -> requests.Response:
        return self.request("DELETE", path, **kwargs)

    # -- SCIM helpers --------------------------------------------------------

    def search(self, resource: Union[str, Resource], filter: str, **options) -> requests.Response:
        """POST a SearchRequest to ``/Users/.search`` or ``/Groups/.search``."""
        kind = parse_resource(resource)
        search_kind = _SEARCH_RESOURCES.get(kind, kind)
        return self.post(self.path(search_kind), json=search_request(filter, **options))

    def find_user(self, user_name: str) -> requests.Response:
        """GET ``/Users?filter=`` scoped to the institution on OEM."""
        return self.get(
            self.path(Resource.USERS),
            params={"filter": build_user_filter(user_name, self.config.profile)},
        )

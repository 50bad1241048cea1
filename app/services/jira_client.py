"""Jira REST API client wrapper"""
import logging
from typing import Any, Dict, Iterator, List, Optional

import requests
from requests.auth import HTTPBasicAuth

from app.config import settings
from app.schemas import JiraConfig
from app.services.errors import CredentialsRejected, UpstreamUnavailable

logger = logging.getLogger(__name__)

API_PREFIX = "/rest/api/3"
HTTP_ERROR_STATUS = 400


class JiraClient:
    """Wrapper for the Jira Cloud REST API (v3)"""

    def __init__(
        self,
        base_url: str,
        email: str,
        api_token: str,
        *,
        timeout: Optional[float] = None,
        page_size: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ):
        """Initialize Jira client (no request is made here)"""
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout if timeout is not None else settings.jira_request_timeout_seconds
        self.page_size = page_size or settings.jira_page_size
        self.session = session or requests.Session()
        self.session.auth = HTTPBasicAuth(email, api_token)
        self.session.headers.update(
            {"Accept": "application/json", "Content-Type": "application/json"}
        )

    @classmethod
    def from_config(cls, config: JiraConfig, **kwargs) -> "JiraClient":
        return cls(config.base_url, config.email, config.api_token, **kwargs)

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Any] = None,
    ) -> Any:
        url = f"{self.base_url}{API_PREFIX}/{path.lstrip('/')}"
        try:
            response = self.session.request(
                method, url, params=params, json=json_body, timeout=self.timeout
            )
        except requests.Timeout as e:
            raise UpstreamUnavailable(
                f"Jira {method} {url} timed out after {self.timeout}s"
            ) from e
        except requests.RequestException as e:
            raise UpstreamUnavailable(f"Jira {method} {url} failed: {e}") from e

        if response.status_code in (401, 403):
            raise CredentialsRejected(
                f"Jira rejected the configured credentials ({response.status_code})",
                status=response.status_code,
                response_text=response.text,
            )
        if response.status_code >= HTTP_ERROR_STATUS:
            raise UpstreamUnavailable(
                f"Jira {method} {url} failed with {response.status_code}",
                status=response.status_code,
                response_text=response.text,
            )
        if not response.text:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamUnavailable(
                f"Jira {method} {url} returned a non-JSON body",
                status=response.status_code,
                response_text=response.text[:500],
            ) from e

    def iter_issue_batches(self, jql: str) -> Iterator[List[Dict[str, Any]]]:
        """Yield batches of raw issues matching `jql` until Jira reports the last page"""
        next_page_token: Optional[str] = None
        while True:
            body: Dict[str, Any] = {
                "jql": jql,
                "maxResults": self.page_size,
                "fields": ["*all"],
            }
            if next_page_token:
                body["nextPageToken"] = next_page_token

            data = self._request("POST", "/search/jql", json_body=body)
            if not isinstance(data, dict):
                raise UpstreamUnavailable("Jira search returned an unexpected payload")

            issues = [i for i in (data.get("issues") or []) if isinstance(i, dict)]
            if issues:
                yield issues

            token = data.get("nextPageToken")
            if data.get("isLast", not token) or not token:
                return
            if token == next_page_token:
                # Jira handed back the token we just used; stop rather than loop forever.
                logger.warning(f"Jira repeated pagination token; stopping search for {jql!r}")
                return
            next_page_token = token

    def get_fields(self) -> List[Dict[str, Any]]:
        """Get field metadata (system and custom fields)"""
        data = self._request("GET", "/field")
        if not isinstance(data, list):
            raise UpstreamUnavailable("Jira field metadata returned an unexpected payload")
        return [f for f in data if isinstance(f, dict)]

    def get_myself(self) -> Dict[str, Any]:
        return self._request("GET", "/myself") or {}

    def test_connection(self) -> bool:
        """Check that the base URL is reachable and the credentials are accepted"""
        try:
            self.get_myself()
            return True
        except UpstreamUnavailable as e:
            logger.warning(f"Jira connection test failed: {e}")
            return False

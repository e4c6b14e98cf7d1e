# collaborators/http.py
from __future__ import annotations

import json
import urllib.error
import urllib.request
from typing import Optional
from urllib.parse import urljoin

from ..errors import AutomationAPIError


class JSONClient:
    """Minimal JSON-over-HTTP client shared by the remote collaborators."""

    def __init__(self, base_url: str, token: str | None = None, timeout: float = 60.0):
        # Ensure base_url doesn't end with /
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout

    def _request(
        self,
        method: str,
        path: str,
        data: Optional[dict] = None,
        headers: Optional[dict] = None,
    ) -> dict:
        """
        Make an HTTP request to the API.

        Args:
            method: HTTP method (GET, POST, etc.)
            path: API path (e.g., "/modules/foo")
            data: Optional JSON data to send in request body
            headers: Optional additional headers

        Returns:
            Parsed JSON response as dictionary

        Raises:
            AutomationAPIError: If the request fails. Network errors and 5xx
                responses are flagged transient.
        """
        url = urljoin(self.base_url + "/", path.lstrip("/"))

        req_headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.token:
            req_headers["Authorization"] = f"Bearer {self.token}"
        if headers:
            req_headers.update(headers)

        req_data = None
        if data is not None:
            req_data = json.dumps(data).encode("utf-8")

        req = urllib.request.Request(url, data=req_data, headers=req_headers, method=method)

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                response_data = response.read().decode("utf-8")
                if response_data:
                    return json.loads(response_data)
                return {}
        except urllib.error.HTTPError as e:
            error_body = e.read().decode("utf-8") if e.fp else ""
            raise AutomationAPIError(
                f"{method} {url} failed: {e.reason}. {error_body}".strip(),
                status=e.code,
                transient=e.code >= 500 or e.code == 429,
            ) from e
        except urllib.error.URLError as e:
            raise AutomationAPIError(f"Network error: {e.reason}", transient=True) from e
        except json.JSONDecodeError as e:
            raise AutomationAPIError(f"Invalid JSON response from {url}: {e}") from e

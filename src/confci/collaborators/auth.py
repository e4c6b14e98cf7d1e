"""Client-credentials authentication against the cloud identity provider.

Every caller gets a fresh token. Provisioning legs call `authenticate`
themselves instead of sharing a session across threads.
"""

from __future__ import annotations

import json
import time
import urllib.error
import urllib.parse
import urllib.request

from ..errors import AuthenticationError
from ..model import AuthContext, Credentials

DEFAULT_AUTHORITY = "https://login.microsoftonline.com"
DEFAULT_SCOPE = "https://management.azure.com/.default"


class ClientSecretAuthenticator:
    def __init__(
        self,
        authority: str = DEFAULT_AUTHORITY,
        scope: str = DEFAULT_SCOPE,
        timeout: float = 30.0,
    ):
        self.authority = authority.rstrip("/")
        self.scope = scope
        self.timeout = timeout

    def token_url(self, tenant_id: str) -> str:
        return f"{self.authority}/{urllib.parse.quote(tenant_id)}/oauth2/v2.0/token"

    def authenticate(self, credentials: Credentials) -> AuthContext:
        if not (credentials.app_id and credentials.app_secret and credentials.tenant_id):
            raise AuthenticationError("Application id, secret and tenant id are all required")

        body = urllib.parse.urlencode({
            "grant_type": "client_credentials",
            "client_id": credentials.app_id,
            "client_secret": credentials.app_secret,
            "scope": self.scope,
        }).encode("utf-8")
        req = urllib.request.Request(
            self.token_url(credentials.tenant_id),
            data=body,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            method="POST",
        )

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                payload = json.loads(response.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            error_body = e.read().decode("utf-8") if e.fp else ""
            raise AuthenticationError(
                f"Authentication failed for app {credentials.app_id}: HTTP {e.code} {error_body}".strip()
            ) from e
        except urllib.error.URLError as e:
            raise AuthenticationError(f"Could not reach identity provider: {e.reason}") from e
        except json.JSONDecodeError as e:
            raise AuthenticationError(f"Invalid token response: {e}") from e

        token = payload.get("access_token")
        if not token:
            raise AuthenticationError("Token response did not contain an access_token")

        expires_in = payload.get("expires_in")
        return AuthContext(
            tenant_id=credentials.tenant_id,
            app_id=credentials.app_id,
            token=token,
            expires_on=time.time() + float(expires_in) if expires_in else None,
        )

# collaborators/upload.py
from __future__ import annotations

import urllib.error
import urllib.request
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit


class UploadError(Exception):
    """Raised when a report could not be uploaded."""
    pass


class HttpReportUploader:
    """
    PUTs a report file under a destination URL.

    The destination is a container URL, optionally with a query string
    (e.g. a pre-signed token); the file name is appended to its path.
    """

    def __init__(self, timeout: float = 60.0, headers: dict | None = None):
        self.timeout = timeout
        self.headers = headers or {"x-ms-blob-type": "BlockBlob"}

    @staticmethod
    def target_url(destination: str, path: Path) -> str:
        parts = urlsplit(destination)
        new_path = parts.path.rstrip("/") + "/" + path.name
        return urlunsplit((parts.scheme, parts.netloc, new_path, parts.query, parts.fragment))

    def upload(self, destination: str, path: Path) -> None:
        url = self.target_url(destination, Path(path))
        headers = {"Content-Type": "application/xml", **self.headers}
        req = urllib.request.Request(url, data=Path(path).read_bytes(), headers=headers, method="PUT")
        try:
            with urllib.request.urlopen(req, timeout=self.timeout):
                pass
        except urllib.error.HTTPError as e:
            raise UploadError(f"Upload of {path} failed: HTTP {e.code} {e.reason}") from e
        except urllib.error.URLError as e:
            raise UploadError(f"Upload of {path} failed: {e.reason}") from e

"""HTTP access to a Strepsil server for the CLI. Kept separate so tests can patch urlopen."""
import json
import os
from pathlib import Path
from typing import Optional
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen


DEFAULT_URL = "http://127.0.0.1:3001"
CONFIG_DIR = Path.home() / ".strepsil"
CONFIG_FILE = CONFIG_DIR / "config.yaml"


class CLIError(Exception):
    """Base for errors the CLI reports and exits on."""


class APIError(CLIError):
    """The server answered with an error status."""

    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Error {status_code}: {detail}")


class ServerUnreachableError(CLIError):
    """The server could not be reached."""


def parse_config(text: str) -> dict:
    """Parse flat `key: value` lines; blank lines and # comments are ignored."""
    config = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition(":")
        if sep:
            config[key.strip()] = value.strip()
    return config


def load_config() -> dict:
    """Read ~/.strepsil/config.yaml, or {} when it does not exist."""
    if not CONFIG_FILE.exists():
        return {}
    return parse_config(CONFIG_FILE.read_text())


def save_config(config: dict):
    """Write ~/.strepsil/config.yaml readable only by the owner."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    CONFIG_FILE.write_text("".join(f"{key}: {value}\n" for key, value in config.items()))
    CONFIG_FILE.chmod(0o600)


def get_url() -> str:
    """Server URL: STREPSIL_URL, then the config file, then the default."""
    return os.environ.get("STREPSIL_URL") or load_config().get("url") or DEFAULT_URL


def build_endpoint(path: str, params: Optional[dict] = None) -> str:
    """Append non-empty query parameters to a path."""
    query = {k: v for k, v in (params or {}).items() if v is not None and v != ""}
    return f"{path}?{urlencode(query)}" if query else path


def _error_detail(e: HTTPError) -> str:
    # Server errors are {"error": "..."}; anything else falls back to the status
    try:
        body = json.loads(e.read().decode())
    except (ValueError, UnicodeDecodeError):
        return f"HTTP {e.code}"
    if isinstance(body, dict):
        return body.get("error") or body.get("detail") or str(body)
    return str(body)


def _open(method: str, endpoint: str, data: Optional[dict], timeout: int, base_url: Optional[str]):
    server = (base_url or get_url()).rstrip("/")
    payload = None if data is None else json.dumps(data).encode()
    req = Request(
        server + endpoint,
        data=payload,
        headers={"Content-Type": "application/json"},
        method=method,
    )
    try:
        return urlopen(req, timeout=timeout)
    except HTTPError as e:
        raise APIError(e.code, _error_detail(e)) from e
    except URLError as e:
        raise ServerUnreachableError(f"Cannot reach {server}: {e.reason}") from e


def api_request(
    method: str,
    endpoint: str,
    data: Optional[dict] = None,
    timeout: int = 30,
    base_url: Optional[str] = None,
) -> dict:
    """Send a request and decode the JSON body.

    `endpoint` includes any query string, e.g. /api/ai-calls?page=2.
    `base_url` overrides the configured server.

    Raises:
        APIError: Error status from the server
        ServerUnreachableError: Network failure
    """
    with _open(method, endpoint, data, timeout, base_url) as resp:
        return json.loads(resp.read().decode())


def api_download(endpoint: str, timeout: int = 120, base_url: Optional[str] = None) -> tuple[bytes, Optional[str]]:
    """Fetch a report body and the filename from its Content-Disposition header."""
    with _open("GET", endpoint, None, timeout, base_url) as resp:
        content = resp.read()
        disposition = resp.headers.get("Content-Disposition") or ""
    filename = None
    if "filename=" in disposition:
        filename = disposition.split("filename=", 1)[1].strip().strip('"')
    return content, filename

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

import httplib2
from google.oauth2.service_account import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import Resource
from googleapiclient.discovery import build

from .config import DEFAULT_CREDENTIALS_KEY, SecretProvider
from .errors import AuthError, ConfigError, CredentialError

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    """Authenticated Sheets client; safe to share between threads and calls."""

    service: Resource
    credentials: Credentials
    timeout: float | None = None

    @property
    def service_account_email(self) -> str | None:
        return getattr(self.credentials, "service_account_email", None)


def _credentials_path(secret_provider: SecretProvider, key_name: str, base_dir: Path | None) -> Path:
    raw_path = secret_provider.get(key_name)
    if not raw_path or not str(raw_path).strip():
        raise ConfigError(f"{key_name} must be set to the service account key path")
    root = Path.cwd() if base_dir is None else base_dir
    return root / Path(str(raw_path).strip()).expanduser()


def _load_credentials(path: Path) -> Credentials:
    try:
        with path.open("r", encoding="utf-8") as fh:
            info = json.load(fh)
    except FileNotFoundError as exc:
        raise CredentialError(f"Service account key file not found: {path}") from exc
    except OSError as exc:
        raise CredentialError(f"Service account key file is not readable: {path}") from exc
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise CredentialError(f"Service account key file is not valid JSON: {path}") from exc

    if not isinstance(info, dict):
        raise CredentialError(f"Service account key file has unexpected structure: {path}")

    try:
        return Credentials.from_service_account_info(info, scopes=SCOPES)
    except (ValueError, KeyError) as exc:
        raise CredentialError(f"Service account key file is malformed: {path} ({exc})") from exc


def build_session(
    secret_provider: SecretProvider,
    *,
    key_name: str = DEFAULT_CREDENTIALS_KEY,
    timeout: float | None = None,
    base_dir: Path | None = None,
) -> Session:
    """Authenticate with the service account named by ``key_name`` and build a Sheets client.

    The path is looked up in ``secret_provider`` and resolved against the working
    directory. Nothing here talks to the network: the discovery document is
    bundled with googleapiclient and tokens are fetched on the first request.
    """

    path = _credentials_path(secret_provider, key_name, base_dir)
    creds = _load_credentials(path)
    LOGGER.debug("Loaded service account key %s", path.name)

    try:
        http = AuthorizedHttp(creds, http=httplib2.Http(timeout=timeout))
        service = build("sheets", "v4", http=http, cache_discovery=False)
    except Exception as exc:
        raise AuthError(f"Could not build Sheets client: {exc}") from exc

    LOGGER.info(
        "Sheets session ready for %s",
        getattr(creds, "service_account_email", None) or "service account",
    )
    return Session(service=service, credentials=creds, timeout=timeout)

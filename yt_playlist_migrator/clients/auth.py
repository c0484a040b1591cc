"""OAuth authorization for the source and target YouTube accounts."""

import logging
from pathlib import Path

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from yt_playlist_migrator.clients.youtube import YouTubeAuthError

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/youtube"]
TOKEN_FILE = "token.json"
LOCAL_SERVER_PORT = 8888


def _load_cached(token_file: Path) -> Credentials | None:
    if not token_file.exists():
        return None
    try:
        return Credentials.from_authorized_user_file(str(token_file), SCOPES)
    except (ValueError, OSError) as e:
        logger.warning(f"Ignoring unreadable token {token_file}: {e}")
        return None


def authorize(token_dir: Path, client_secrets: Path) -> Credentials:
    """
    Credentials for one account, cached under token_dir.

    A cached token is refreshed when expired; otherwise the browser consent
    flow runs and the new token is saved for the next run.
    """
    token_file = token_dir / TOKEN_FILE
    creds = _load_cached(token_file)

    if creds and creds.valid:
        return creds

    try:
        if creds and creds.expired and creds.refresh_token:
            logger.info(f"Refreshing token in {token_dir}")
            creds.refresh(Request())
        else:
            if not client_secrets.exists():
                raise YouTubeAuthError(
                    f"OAuth client file not found: {client_secrets}. "
                    "Download it from the Google Cloud console or set GOOGLE_CLIENT_SECRETS"
                )
            flow = InstalledAppFlow.from_client_secrets_file(str(client_secrets), SCOPES)
            creds = flow.run_local_server(port=LOCAL_SERVER_PORT, access_type="offline",
                                          prompt="consent")
    except YouTubeAuthError:
        raise
    except (GoogleAuthError, ValueError, OSError) as e:
        raise YouTubeAuthError(f"Failed to authenticate: {e}")

    try:
        token_dir.mkdir(parents=True, exist_ok=True)
        token_file.write_text(creds.to_json(), encoding="utf-8")
    except OSError as e:
        logger.warning(f"Failed to cache token: {e}")

    return creds

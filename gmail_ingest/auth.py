"""
Gmail OAuth2 credentials.
Uses credentials.json for the installed-app flow; the resulting token.json is
refreshed in place on later runs.
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

# Read, label and trash messages
SCOPES = ["https://www.googleapis.com/auth/gmail.modify"]


def authorize(credentials_path: Path, token_path: Path):
    """Run the installed-app consent flow and save token.json."""
    from google_auth_oauthlib.flow import InstalledAppFlow

    if not credentials_path.exists():
        raise FileNotFoundError(
            f"Credentials file not found: {credentials_path}. "
            "Place credentials.json from Google Cloud Console."
        )
    flow = InstalledAppFlow.from_client_secrets_file(str(credentials_path), SCOPES)
    creds = flow.run_local_server(port=0)
    with open(token_path, "w") as f:
        f.write(creds.to_json())
    logger.info("OAuth token saved to %s", token_path)
    return creds


def load_credentials(token_path: Path):
    """Load token.json, refreshing it when expired. Never starts a consent flow."""
    from google.auth.transport.requests import Request
    from google.oauth2.credentials import Credentials

    if not token_path.exists():
        raise FileNotFoundError(
            f"Token file not found: {token_path}. Run the 'authorize' command first."
        )
    creds = Credentials.from_authorized_user_file(str(token_path), SCOPES)
    if not creds.valid:
        if creds.expired and creds.refresh_token:
            creds.refresh(Request())
            with open(token_path, "w") as f:
                f.write(creds.to_json())
            logger.info("OAuth token refreshed and saved to %s", token_path)
        else:
            raise ValueError(f"Token in {token_path} is invalid and cannot be refreshed")
    return creds

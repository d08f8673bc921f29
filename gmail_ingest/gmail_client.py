"""
Gmail Client - Gmail API access for the shared mailbox.
Lists, fetches, labels and trashes messages; all calls use userId="me".
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from googleapiclient.errors import HttpError

from common.errors import ExternalCallFailure
from gmail_ingest.auth import load_credentials

logger = logging.getLogger(__name__)

USER_ID = "me"


def _execute(request, what: str) -> Dict[str, Any]:
    """Execute a Gmail API request, wrapping HTTP errors."""
    try:
        return request.execute() or {}
    except HttpError as e:
        status = getattr(e.resp, "status", None)
        raise ExternalCallFailure("gmail", int(status) if status else None, f"{what}: {e}") from e


class GmailClient:
    """
    Gmail API wrapper implementing the Mailbox interface.
    The discovery service is built lazily on first use.
    """

    def __init__(self, token_path: Optional[Path] = None, service=None):
        self.token_path = token_path or Path("token.json")
        self._service = service

    def _get_service(self):
        if self._service is None:
            creds = load_credentials(self.token_path)
            from googleapiclient.discovery import build

            self._service = build("gmail", "v1", credentials=creds, cache_discovery=False)
        return self._service

    def _messages(self):
        return self._get_service().users().messages()

    def list_messages(self, query: str, page_size: int = 100) -> List[Dict[str, str]]:
        """
        List all messages matching a Gmail search query.
        Returns a list of {id, threadId}, following nextPageToken.
        """
        messages: List[Dict[str, str]] = []
        page_token = None
        while True:
            params: Dict[str, Any] = {"userId": USER_ID, "q": query, "maxResults": page_size}
            if page_token:
                params["pageToken"] = page_token
            resp = _execute(self._messages().list(**params), "list messages")
            messages.extend(resp.get("messages", []) or [])
            page_token = resp.get("nextPageToken")
            if not page_token:
                break
        logger.info("Found %d messages for query '%s'", len(messages), query)
        return messages

    def get_message(self, message_id: str) -> Dict[str, Any]:
        """Fetch full message by ID."""
        return _execute(
            self._messages().get(userId=USER_ID, id=message_id, format="full"),
            f"get message {message_id}",
        )

    def get_attachment(self, message_id: str, attachment_id: str) -> Dict[str, Any]:
        """Fetch attachment body ({size, data}) by message and attachment id."""
        return _execute(
            self._messages().attachments().get(userId=USER_ID, messageId=message_id, id=attachment_id),
            f"get attachment of message {message_id}",
        )

    def trash_message(self, message_id: str) -> Dict[str, Any]:
        return _execute(
            self._messages().trash(userId=USER_ID, id=message_id),
            f"trash message {message_id}",
        )

    def list_labels(self) -> List[Dict[str, Any]]:
        resp = _execute(self._get_service().users().labels().list(userId=USER_ID), "list labels")
        return resp.get("labels", []) or []

    def create_label(self, name: str) -> Dict[str, Any]:
        body = {
            "name": name,
            "labelListVisibility": "labelShow",
            "messageListVisibility": "show",
        }
        return _execute(
            self._get_service().users().labels().create(userId=USER_ID, body=body),
            f"create label {name}",
        )

    def add_label(self, message_id: str, label_id: str) -> Dict[str, Any]:
        return _execute(
            self._messages().modify(userId=USER_ID, id=message_id, body={"addLabelIds": [label_id]}),
            f"label message {message_id}",
        )

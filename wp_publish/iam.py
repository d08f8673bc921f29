"""
Library IAM API client - looks up employees by email address.
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from common.errors import ExternalCallFailure

logger = logging.getLogger(__name__)


class IamClient:
    """Directory lookups against the Library IAM API."""

    def __init__(
        self,
        url: str,
        username: str,
        password: str,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.auth = (username, password)

    def get_employee_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """
        Get an employee record by email.
        Returns None when the directory has no such employee (HTTP 404).
        """
        url = f"{self.url}/employees/{quote(email, safe='@')}"
        logger.info("Searching Library IAM for user by email %s", email)
        try:
            res = self.session.get(url, params={"id-type": "email"}, timeout=self.timeout)
        except requests.RequestException as e:
            raise ExternalCallFailure("iam", None, f"searching for {email}: {e}") from e

        if res.status_code == 404:
            logger.info("No user found in Library IAM for %s", email)
            return None
        if not res.ok:
            raise ExternalCallFailure("iam", res.status_code, f"searching for {email}: {res.text or ''}")

        data = res.json()
        logger.info(
            "User found in Library IAM for %s: %s %s",
            email,
            data.get("first_name", ""),
            data.get("last_name", ""),
        )
        return data

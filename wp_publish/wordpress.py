"""
WordPress REST API client (wp-json/wp/v2).
Authenticates with HTTP basic auth using an application password.
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from common.errors import ExternalCallFailure

logger = logging.getLogger(__name__)


def content_disposition(filename: str) -> str:
    """
    Content-Disposition for an upload. Header values must be latin-1, so the
    plain filename is an ASCII fallback and the real name goes in filename* (RFC 6266).
    """
    fallback = filename.encode("ascii", "ignore").decode("ascii")
    fallback = fallback.replace("\\", "").replace('"', "").strip() or "attachment"
    encoded = quote(filename, safe="")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{encoded}"


class WordPressClient:
    """Posts, media, users and categories on one WordPress site."""

    def __init__(
        self,
        url: str,
        username: str,
        password: str,
        reassign_user_id: int = 1,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_url = f"{url.rstrip('/')}/wp-json/wp/v2"
        self.reassign_user_id = reassign_user_id
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.auth = (username, password)

    def _request(self, method: str, path: str, what: str, **kwargs) -> Any:
        url = f"{self.api_url}/{path}"
        try:
            res = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise ExternalCallFailure("wordpress", None, f"{what}: {e}") from e
        if not res.ok:
            raise ExternalCallFailure("wordpress", res.status_code, f"{what}: {res.text or ''}")
        return res.json()

    # Posts

    def create_post(self, data: Dict[str, Any]) -> Dict[str, Any]:
        post = self._request("POST", "posts", "creating post", json=data)
        logger.info("Created WordPress post %s", post.get("id"))
        return post

    def delete_post(self, post_id: int) -> Dict[str, Any]:
        logger.info("Deleting WordPress post %s", post_id)
        return self._request("DELETE", f"posts/{post_id}", "deleting post", params={"force": "true"})

    # Media

    def upload_media(self, content: bytes, filename: str, mime_type: str) -> Dict[str, Any]:
        headers = {
            "Content-Type": mime_type,
            "Content-Disposition": content_disposition(filename),
        }
        media = self._request("POST", "media", f"uploading {filename}", data=content, headers=headers)
        logger.info("Uploaded %s as media %s", filename, media.get("id"))
        return media

    def update_media(self, media_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", f"media/{media_id}", "updating media", json=data)

    def delete_media(self, media_id: int) -> Dict[str, Any]:
        logger.info("Deleting WordPress media %s", media_id)
        return self._request("DELETE", f"media/{media_id}", "deleting media", params={"force": "true"})

    # Users

    def find_users(self, search: str) -> List[Dict[str, Any]]:
        return self._request(
            "GET", "users", "searching users", params={"search": search, "context": "edit"}
        )

    def create_user(self, data: Dict[str, Any]) -> Dict[str, Any]:
        user = self._request("POST", "users", "creating user", json=data)
        logger.info("Created WordPress user %s", user.get("id"))
        return user

    def delete_user(self, user_id: int) -> Dict[str, Any]:
        logger.info("Deleting WordPress user %s", user_id)
        return self._request(
            "DELETE",
            f"users/{user_id}",
            "deleting user",
            params={"force": "true", "reassign": self.reassign_user_id},
        )

    # Categories

    def find_categories(self, search: str) -> List[Dict[str, Any]]:
        return self._request("GET", "categories", "searching categories", params={"search": search})

    def create_category(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "categories", "creating category", json=data)

    def delete_category(self, category_id: int) -> Dict[str, Any]:
        logger.info("Deleting WordPress category %s", category_id)
        return self._request(
            "DELETE", f"categories/{category_id}", "deleting category", params={"force": "true"}
        )

"""
Collaborator interfaces the pipeline depends on.

GmailClient, WordPressClient and IamClient implement these; tests substitute
in-memory doubles.
"""

from typing import Any, Dict, List, Optional, Protocol


class Mailbox(Protocol):
    def list_messages(self, query: str) -> List[Dict[str, str]]: ...

    def get_message(self, message_id: str) -> Dict[str, Any]: ...

    def get_attachment(self, message_id: str, attachment_id: str) -> Dict[str, Any]: ...

    def trash_message(self, message_id: str) -> Dict[str, Any]: ...

    def list_labels(self) -> List[Dict[str, Any]]: ...

    def create_label(self, name: str) -> Dict[str, Any]: ...

    def add_label(self, message_id: str, label_id: str) -> Dict[str, Any]: ...


class ContentApi(Protocol):
    def create_post(self, data: Dict[str, Any]) -> Dict[str, Any]: ...

    def delete_post(self, post_id: int) -> Dict[str, Any]: ...

    def upload_media(self, content: bytes, filename: str, mime_type: str) -> Dict[str, Any]: ...

    def update_media(self, media_id: int, data: Dict[str, Any]) -> Dict[str, Any]: ...

    def delete_media(self, media_id: int) -> Dict[str, Any]: ...

    def find_users(self, search: str) -> List[Dict[str, Any]]: ...

    def create_user(self, data: Dict[str, Any]) -> Dict[str, Any]: ...

    def delete_user(self, user_id: int) -> Dict[str, Any]: ...

    def find_categories(self, search: str) -> List[Dict[str, Any]]: ...

    def create_category(self, data: Dict[str, Any]) -> Dict[str, Any]: ...

    def delete_category(self, category_id: int) -> Dict[str, Any]: ...


class Directory(Protocol):
    def get_employee_by_email(self, email: str) -> Optional[Dict[str, Any]]: ...

"""
Attachment publishing - uploads message attachments to the WordPress media
library and wires them into the post body.

Attachments with a content-identifier replace their cid: references inline;
every other attachment is listed as a download link at the end of the post.
"""

import html
import logging
from typing import Iterable, List, Optional

from common.ports import ContentApi
from gmail_ingest.content_tree import Attachment

logger = logging.getLogger(__name__)


class AttachmentPublisher:
    def __init__(self, wp: ContentApi):
        self.wp = wp

    def upload(self, attachment: Attachment) -> Attachment:
        """Upload one attachment and keep the resulting media record on it."""
        logger.info("Uploading attachment %s (%s)", attachment.filename, attachment.mime_type)
        attachment.media = self.wp.upload_media(
            attachment.content, attachment.filename, attachment.mime_type
        )
        return attachment

    @staticmethod
    def substitute_inline(body: str, attachments: Iterable[Attachment]) -> str:
        """Replace cid:<id> references with the published media URL."""
        for attachment in attachments:
            if attachment.content_id and attachment.media:
                body = body.replace(f"cid:{attachment.content_id}", attachment.url)
        return body

    @staticmethod
    def link_list(attachments: Iterable[Attachment]) -> str:
        """HTML list of links for attachments that are not referenced inline."""
        items = [
            f'<li><a href="{html.escape(a.url, quote=True)}">{html.escape(a.filename)}</a></li>'
            for a in attachments
            if not a.content_id and a.media
        ]
        if not items:
            return ""
        return '<ul class="email-attachments">' + "".join(items) + "</ul>"

    def link_to_post(self, attachments: List[Attachment], post_id: int, author_id: Optional[int]) -> None:
        """Attach every uploaded media record to the post (and its author)."""
        for attachment in attachments:
            if attachment.media_id is None:
                continue
            data = {"post": post_id}
            if author_id:
                data["author"] = author_id
            self.wp.update_media(attachment.media_id, data)
            logger.info("Linked media %s to post %s", attachment.media_id, post_id)

"""
Category assignment by sender.

Posts from configured senders (e.g. the HR mailbox) are filed under a
WordPress category, which is created on first use.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from common.config import CategoryMapping
from common.ports import ContentApi

logger = logging.getLogger(__name__)


@dataclass
class ResolvedCategories:
    ids: List[int] = field(default_factory=list)
    created: List[Dict[str, Any]] = field(default_factory=list)


def qualify_email(email: str, default_domain: str) -> str:
    """'libraryhr' -> 'libraryhr@ucdavis.edu'; full addresses are kept."""
    if "@" in email:
        return email
    return f"{email}@{default_domain}"


class CategoryResolver:
    def __init__(self, wp: ContentApi, mappings: Sequence[CategoryMapping], default_domain: str):
        self.wp = wp
        self.mappings = [
            CategoryMapping(
                slug=m.slug,
                name=m.name,
                sender_emails=[qualify_email(e, default_domain) for e in m.sender_emails],
            )
            for m in mappings
        ]

    def mappings_for(self, email: str) -> List[CategoryMapping]:
        return [m for m in self.mappings if email in m.sender_emails]

    def resolve(
        self, email: str, on_created: Optional[Callable[[Dict[str, Any]], None]] = None
    ) -> ResolvedCategories:
        """
        Find or create the categories mapped to a sender email.
        on_created is called right after each category is created.
        """
        result = ResolvedCategories()
        for mapping in self.mappings_for(email):
            found = next(
                (c for c in self.wp.find_categories(mapping.slug) or [] if c.get("slug") == mapping.slug),
                None,
            )
            if found is None:
                logger.info("Category %s not found. Creating it", mapping.slug)
                found = self.wp.create_category({"name": mapping.name, "slug": mapping.slug})
                result.created.append(found)
                if on_created:
                    on_created(found)
            else:
                logger.info("Category %s found", mapping.slug)
            result.ids.append(found["id"])
        return result

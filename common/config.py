"""
Application settings loaded from APP_* environment variables (or a .env file).

Nested settings such as APP_EMAIL_LISTS and APP_CATEGORY_MAPPINGS are JSON:

    APP_EMAIL_LISTS='[{"sender": "lib-personnel@ucdavis.edu", "strip_prefix": "[lib-personnel]"}]'
"""

from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class EmailList(BaseModel):
    """A mailing list whose messages are published."""

    sender: str
    strip_prefix: Optional[str] = None


class CategoryMapping(BaseModel):
    """Assigns a WordPress category to posts from specific senders."""

    slug: str
    name: str
    sender_emails: List[str] = Field(default_factory=list)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="APP_", env_file=".env", extra="ignore")

    app_name: str = "gmail-wp-pipeline"
    log_level: str = "INFO"

    # Gmail
    gmail_credentials_path: str = "credentials.json"
    gmail_token_path: str = "token.json"
    gmail_processed_label: str = "wp-processed"
    retention_days: int = 30

    # WordPress
    wp_url: str = ""
    wp_username: str = ""
    wp_password: str = ""
    wp_reassign_user_id: int = 1

    # Library IAM
    iam_url: str = ""
    iam_username: str = ""
    iam_password: str = ""

    email_lists: List[EmailList] = Field(default_factory=list)
    category_mappings: List[CategoryMapping] = Field(default_factory=list)
    default_email_domain: str = "ucdavis.edu"

    default_timezone: str = "America/Los_Angeles"
    max_part_depth: int = 20
    task_timeout: float = 600.0
    request_timeout: float = 30.0


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

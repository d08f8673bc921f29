"""
Pytest configuration and shared fixtures.
"""
import os
import sys

import pytest

# Add project root to path for imports
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from common.config import EmailList, Settings  # noqa: E402
from tests.fakes import FakeDirectory, FakeMailbox, FakeWordPress  # noqa: E402


@pytest.fixture
def settings():
    return Settings(
        wp_url="https://wp.example",
        email_lists=[EmailList(sender="lib-personnel@ucdavis.edu", strip_prefix="[lib-personnel]")],
        gmail_processed_label="wp-processed",
        default_timezone="America/Los_Angeles",
        retention_days=30,
        task_timeout=0,
    )


@pytest.fixture
def mailbox():
    return FakeMailbox()


@pytest.fixture
def wp():
    return FakeWordPress()


@pytest.fixture
def directory():
    return FakeDirectory(
        {
            "jdoe@ucdavis.edu": {"user_id": "jdoe", "first_name": "Jane", "last_name": "Doe"},
        }
    )

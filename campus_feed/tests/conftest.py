import os
import sys

import pytest

# Add project root to path so the campus_feed package resolves when running from a checkout
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from dotenv import load_dotenv

# Load test environment variables from .env.test in the project root
dotenv_path = os.path.join(project_root, '.env.test')
if os.path.exists(dotenv_path):
    load_dotenv(dotenv_path=dotenv_path)

from campus_feed.tests.stubs.db_session_stub import make_mock_session, session_context
from campus_feed.tests.stubs.in_memory_ballot_repository import InMemoryBallotRepository


@pytest.fixture
def mock_session():
    return make_mock_session()


@pytest.fixture
def patch_db_session(mocker, mock_session):
    """
    Patch `get_async_db_session` in the given module so every call yields `mock_session`.

    Usage: ``patch_db_session("campus_feed.core.like_service")``.
    """
    def _patch(module_path: str):
        return mocker.patch(
            f"{module_path}.get_async_db_session",
            side_effect=lambda existing_session=None: session_context(mock_session),
        )
    return _patch


@pytest.fixture
def ballot_repository():
    return InMemoryBallotRepository()

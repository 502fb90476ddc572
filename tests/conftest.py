"""
Pytest configuration and fixtures for ReviewGate tests.

Provides mock Supabase client and test fixtures.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest

from reviewgate.client import ReviewGate
from reviewgate.config import ReviewGateConfig
from reviewgate.identity.models import Identity
from reviewgate.invitations.models import ReviewInvitation
from reviewgate.utils.supabase import ReviewGateSupabaseClient

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_query_builder(data=None, count=None) -> Mock:
    """A chainable PostgREST query builder whose execute() returns ``data``."""
    query_builder = Mock()
    for method in (
        "select",
        "insert",
        "update",
        "delete",
        "eq",
        "is_",
        "in_",
        "or_",
        "gt",
        "gte",
        "lte",
        "limit",
        "offset",
        "order",
    ):
        setattr(query_builder, method, Mock(return_value=query_builder))
    query_builder.execute = AsyncMock(
        return_value=Mock(data=data if data is not None else [], count=count)
    )
    return query_builder


@pytest.fixture
def mock_supabase_client():
    """Create a mock Supabase client."""
    client = AsyncMock()

    auth_client = AsyncMock()
    client.auth = auth_client

    query_builders = {}

    def table_mock(table_name: str):
        if table_name not in query_builders:
            query_builders[table_name] = make_query_builder()
        return query_builders[table_name]

    client.table = Mock(side_effect=table_mock)
    client.rpc = Mock(return_value=make_query_builder())
    client.schema = Mock(return_value=client)
    client._query_builders = query_builders

    return client


@pytest.fixture
def config():
    """Create a test ReviewGateConfig."""
    return ReviewGateConfig(
        supabase_url="https://test.supabase.co",
        supabase_key="test-service-key-12345678901234567890",
        db_schema="public",
        app_url=None,
    )


@pytest.fixture
def gate(mock_supabase_client, config):
    """Create a test ReviewGate instance."""
    client = ReviewGateSupabaseClient(config=config, client=mock_supabase_client)
    return ReviewGate(config=config, client=client)


def setup_table_mock(gate, table_name, data=None, count=None):
    """
    Point a table's query builder at a canned result.

    Returns the query builder so tests can assert on the calls made.
    """
    query_builder = gate.client._client.table(table_name)
    query_builder.execute = AsyncMock(return_value=Mock(data=data or [], count=count))
    return query_builder


@pytest.fixture
def identity():
    return Identity(id=uuid4(), email="REV@X.com")


@pytest.fixture
def sample_prompt_id():
    return uuid4()


@pytest.fixture
def sample_project_id():
    return uuid4()


@pytest.fixture
def sample_invitation_data(sample_prompt_id, sample_project_id):
    """Invitation row as returned by review_invitations joined with prompts."""
    return {
        "id": str(uuid4()),
        "invitation_token": "tok-1",
        "reviewer_email": "rev@x.com",
        "reviewer_id": None,
        "prompt_id": str(sample_prompt_id),
        "inviter_id": str(uuid4()),
        "message": "Please take a look",
        "status": "sent",
        "expires_at": (NOW + timedelta(days=7)).isoformat(),
        "reviewer_completed_at": None,
        "created_at": (NOW - timedelta(days=1)).isoformat(),
        "updated_at": (NOW - timedelta(days=1)).isoformat(),
        "prompts": {
            "id": str(sample_prompt_id),
            "project_id": str(sample_project_id),
            "title": "Support bot prompt",
        },
    }


@pytest.fixture
def sample_invitation(sample_invitation_data):
    return ReviewInvitation(**sample_invitation_data)


@pytest.fixture
def sample_audit_log_data():
    return {
        "id": str(uuid4()),
        "action": "invite.accepted",
        "user_id": str(uuid4()),
        "resource_type": "invitation",
        "resource_id": str(uuid4()),
        "metadata": {"attempt": 1},
        "created_at": NOW.isoformat(),
    }

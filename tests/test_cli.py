"""
Tests for reviewgate.cli module.
"""

from unittest.mock import AsyncMock, Mock, patch
from uuid import uuid4

import pytest
from typer.testing import CliRunner

from reviewgate.acceptance.errors import ErrorKind
from reviewgate.acceptance.models import AcceptanceOutcome, ProcessStep
from reviewgate.cli.main import app
from reviewgate.guard.access import GuardDecision
from reviewgate.identity.models import AuthMode

runner = CliRunner()


@pytest.fixture
def patched_gate(gate):
    with patch("reviewgate.client.ReviewGate.create", AsyncMock(return_value=gate)):
        yield gate


class TestInvitesCommands:
    def test_show(self, patched_gate, sample_invitation):
        patched_gate.invites.get_by_token = AsyncMock(return_value=sample_invitation)

        result = runner.invoke(app, ["invites", "show", "tok-1"])

        assert result.exit_code == 0
        assert "rev@x.com" in result.output
        assert "Support bot prompt" in result.output

    def test_show_unknown_token(self, patched_gate):
        patched_gate.invites.get_by_token = AsyncMock(return_value=None)

        result = runner.invoke(app, ["invites", "show", "nope"])

        assert result.exit_code == 1
        assert "Invalid invitation link" in result.output

    def test_accept(self, patched_gate):
        orchestrator = Mock()
        orchestrator.run = AsyncMock(
            return_value=AcceptanceOutcome(
                step=ProcessStep.COMPLETE, token="tok-1", redirect_url="/project/p"
            )
        )
        patched_gate.acceptance = Mock(return_value=orchestrator)
        user_id = uuid4()

        result = runner.invoke(
            app, ["invites", "accept", "tok-1", "--user", str(user_id), "--email", "rev@x.com"]
        )

        assert result.exit_code == 0
        assert "Invitation accepted" in result.output
        token, identity = orchestrator.run.await_args.args
        assert token == "tok-1"
        assert identity.id == user_id
        orchestrator.close.assert_called_once()

    def test_accept_failure(self, patched_gate):
        orchestrator = Mock()
        orchestrator.run = AsyncMock(
            return_value=AcceptanceOutcome(
                step=ProcessStep.ERROR,
                token="tok-1",
                error_kind=ErrorKind.EXPIRED,
                message="This invitation has expired",
            )
        )
        patched_gate.acceptance = Mock(return_value=orchestrator)

        result = runner.invoke(
            app, ["invites", "accept", "tok-1", "--user", str(uuid4()), "--email", "rev@x.com"]
        )

        assert result.exit_code == 1
        assert "expired" in result.output

    def test_pending(self, patched_gate, sample_invitation):
        patched_gate.invites.list_active_for_identity = AsyncMock(
            return_value=[sample_invitation]
        )

        result = runner.invoke(
            app, ["invites", "pending", "--user", str(uuid4()), "--email", "rev@x.com"]
        )

        assert result.exit_code == 0
        assert "tok-1" in result.output

    def test_auth_link(self, patched_gate, sample_invitation):
        patched_gate.invites.get_by_token = AsyncMock(return_value=sample_invitation)
        patched_gate.identities.auth_mode_for = AsyncMock(return_value=AuthMode.SIGN_IN)

        result = runner.invoke(app, ["invites", "auth-link", "tok-1"])

        assert result.exit_code == 0
        assert "/auth?invitation=tok-1" in result.output
        assert "mode=signin" in result.output

    def test_reviewed_not_found(self, patched_gate):
        patched_gate.invites.mark_reviewed = AsyncMock(side_effect=ValueError("not found"))

        result = runner.invoke(app, ["invites", "reviewed", str(uuid4())])

        assert result.exit_code == 1
        assert "not found" in result.output


class TestGuardCommands:
    def test_check_redirect(self, patched_gate):
        guard = Mock()
        guard.evaluate = AsyncMock(
            return_value=GuardDecision(
                allow=False, redirect_to="/", owned_count=0, invitation_count=2
            )
        )
        patched_gate.guard = Mock(return_value=guard)

        result = runner.invoke(
            app, ["guard", "check", "--user", str(uuid4()), "--email", "rev@x.com"]
        )

        assert result.exit_code == 0
        assert "Redirected to /" in result.output
        assert "Active invitations: 2" in result.output
        assert guard.evaluate.await_args.args[1] == "/dashboard"

"""
Tests for reviewgate.acceptance.orchestrator module.
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, Mock, call
from uuid import uuid4

import httpx
import pytest

from reviewgate.acceptance.errors import ErrorKind
from reviewgate.acceptance.models import ProcessStep
from reviewgate.audit.models import AuditAction
from reviewgate.identity.models import Identity
from reviewgate.invitations.models import ReviewInvitation

from tests.conftest import NOW


def make_orchestrator(gate, invitation, accepted=None, **kwargs):
    """Orchestrator over stubbed invitation and audit managers."""
    gate.invites = Mock()
    gate.invites.get_by_token = AsyncMock(return_value=invitation)
    gate.invites.accept = AsyncMock(return_value=accepted or invitation)
    gate.audit = Mock()
    gate.audit.log = AsyncMock()

    steps = []
    kwargs.setdefault("clock", lambda: NOW)
    kwargs.setdefault("sleep", AsyncMock())
    orchestrator = gate.acceptance(on_step=steps.append, **kwargs)
    return orchestrator, steps


def accepted_copy(invitation: ReviewInvitation, identity: Identity) -> ReviewInvitation:
    return invitation.model_copy(update={"status": "accepted", "accepted_by": identity.id})


class TestHappyPath:
    """A fresh invitation accepted by its invitee."""

    @pytest.mark.asyncio
    async def test_walks_every_step_in_order(self, gate, sample_invitation):
        identity = Identity(id=uuid4(), email="REV@X.com")
        orchestrator, steps = make_orchestrator(
            gate, sample_invitation, accepted_copy(sample_invitation, identity)
        )

        outcome = await orchestrator.run("tok-1", identity)

        assert steps == [
            ProcessStep.VERIFYING,
            ProcessStep.ACCEPTING,
            ProcessStep.PREPARING,
            ProcessStep.COMPLETE,
        ]
        assert outcome.succeeded
        assert outcome.already_accepted is False
        assert orchestrator.step == ProcessStep.COMPLETE
        gate.invites.accept.assert_awaited_once_with("tok-1", identity.id, now=NOW)

    @pytest.mark.asyncio
    async def test_redirect_targets_project_with_prompt(
        self, gate, sample_invitation, sample_project_id, sample_prompt_id, identity
    ):
        orchestrator, _ = make_orchestrator(
            gate, sample_invitation, accepted_copy(sample_invitation, identity)
        )

        outcome = await orchestrator.run("tok-1", identity)

        assert outcome.redirect_url == (
            f"/project/{sample_project_id}?invitation=tok-1&prompt={sample_prompt_id}"
        )
        assert outcome.resource.title == "Support bot prompt"

    @pytest.mark.asyncio
    async def test_settles_before_completing(self, gate, sample_invitation, identity):
        sleep = AsyncMock()
        orchestrator, _ = make_orchestrator(gate, sample_invitation, sleep=sleep)

        await orchestrator.run("tok-1", identity)

        sleep.assert_awaited_once_with(0.5)

    @pytest.mark.asyncio
    async def test_records_audit_entry(self, gate, sample_invitation, identity):
        orchestrator, _ = make_orchestrator(gate, sample_invitation)

        await orchestrator.run("tok-1", identity)

        gate.audit.log.assert_awaited_once()
        assert gate.audit.log.await_args.args[0] == AuditAction.INVITE_ACCEPTED

    @pytest.mark.asyncio
    async def test_audit_failure_does_not_fail_acceptance(
        self, gate, sample_invitation, identity
    ):
        orchestrator, _ = make_orchestrator(gate, sample_invitation)
        gate.audit.log.side_effect = RuntimeError("audit table missing")

        outcome = await orchestrator.run("tok-1", identity)

        assert outcome.succeeded


class TestIdempotence:
    """Re-entry by the identity that already accepted."""

    @pytest.mark.asyncio
    async def test_already_accepted_by_same_identity_skips_writes(
        self, gate, sample_invitation, identity
    ):
        invitation = accepted_copy(sample_invitation, identity)
        orchestrator, steps = make_orchestrator(gate, invitation)

        outcome = await orchestrator.run("tok-1", identity)

        assert outcome.succeeded
        assert outcome.already_accepted is True
        assert steps == [ProcessStep.VERIFYING, ProcessStep.COMPLETE]
        gate.invites.accept.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_already_accepted_wins_over_expiry(
        self, gate, sample_invitation, identity
    ):
        invitation = accepted_copy(sample_invitation, identity).model_copy(
            update={"expires_at": NOW - timedelta(days=1)}
        )
        orchestrator, _ = make_orchestrator(gate, invitation)

        outcome = await orchestrator.run("tok-1", identity)

        assert outcome.succeeded
        assert outcome.already_accepted is True

    @pytest.mark.asyncio
    async def test_empty_write_resolved_by_reread(self, gate, sample_invitation, identity):
        orchestrator, _ = make_orchestrator(gate, sample_invitation)
        gate.invites.accept = AsyncMock(return_value=None)
        gate.invites.get_by_token = AsyncMock(
            side_effect=[sample_invitation, accepted_copy(sample_invitation, identity)]
        )

        outcome = await orchestrator.run("tok-1", identity)

        assert outcome.succeeded

    @pytest.mark.asyncio
    async def test_empty_write_for_other_identity_fails(
        self, gate, sample_invitation, identity
    ):
        other = Identity(id=uuid4(), email="rev@x.com")
        orchestrator, _ = make_orchestrator(gate, sample_invitation)
        gate.invites.accept = AsyncMock(return_value=None)
        gate.invites.get_by_token = AsyncMock(
            side_effect=[sample_invitation, accepted_copy(sample_invitation, other)]
        )

        outcome = await orchestrator.run("tok-1", identity)

        assert outcome.step == ProcessStep.ERROR
        assert outcome.error_kind == ErrorKind.ALREADY_ACCEPTED


class TestValidationFailures:
    """Fatal outcomes that are never retried automatically."""

    @pytest.mark.asyncio
    async def test_unknown_token(self, gate, identity):
        orchestrator, steps = make_orchestrator(gate, None)

        outcome = await orchestrator.run("nope", identity)

        assert outcome.step == ProcessStep.ERROR
        assert outcome.error_kind == ErrorKind.INVALID_TOKEN
        assert outcome.retry_allowed is True
        assert outcome.dashboard_url == "/dashboard"
        assert steps == [ProcessStep.VERIFYING, ProcessStep.ERROR]
        gate.invites.get_by_token.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_email_mismatch_names_both_addresses(self, gate, sample_invitation):
        intruder = Identity(id=uuid4(), email="Someone.Else@x.com")
        orchestrator, _ = make_orchestrator(gate, sample_invitation)

        outcome = await orchestrator.run("tok-1", intruder)

        assert outcome.error_kind == ErrorKind.EMAIL_MISMATCH
        assert outcome.target_email == "rev@x.com"
        assert outcome.identity_email == "Someone.Else@x.com"
        assert "Someone.Else@x.com" in outcome.message
        assert "rev@x.com" in outcome.message
        assert outcome.logout_url == "/auth?invitation=tok-1"
        gate.invites.accept.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_email_match_ignores_case(self, gate, sample_invitation):
        shouty = Identity(id=uuid4(), email="REV@X.COM")
        orchestrator, _ = make_orchestrator(gate, sample_invitation)

        outcome = await orchestrator.run("tok-1", shouty)

        assert outcome.succeeded

    @pytest.mark.asyncio
    async def test_accepted_by_another_identity(self, gate, sample_invitation, identity):
        other = Identity(id=uuid4(), email="rev@x.com")
        orchestrator, _ = make_orchestrator(
            gate, accepted_copy(sample_invitation, other)
        )

        outcome = await orchestrator.run("tok-1", identity)

        assert outcome.error_kind == ErrorKind.ALREADY_ACCEPTED
        gate.invites.accept.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_expired(self, gate, sample_invitation, identity):
        invitation = sample_invitation.model_copy(
            update={"expires_at": NOW - timedelta(seconds=1)}
        )
        orchestrator, _ = make_orchestrator(gate, invitation)

        outcome = await orchestrator.run("tok-1", identity)

        assert outcome.error_kind == ErrorKind.EXPIRED
        gate.invites.accept.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_is_audited(self, gate, sample_invitation, identity):
        invitation = sample_invitation.model_copy(
            update={"expires_at": NOW - timedelta(seconds=1)}
        )
        orchestrator, _ = make_orchestrator(gate, invitation)

        await orchestrator.run("tok-1", identity)

        assert gate.audit.log.await_args.args[0] == AuditAction.INVITE_ACCEPT_FAILED
        assert gate.audit.log.await_args.kwargs["metadata"]["error"] == "expired"

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_error(self, gate, identity):
        orchestrator, _ = make_orchestrator(gate, None)
        gate.invites.get_by_token.side_effect = KeyError("boom")

        outcome = await orchestrator.run("tok-1", identity)

        assert outcome.step == ProcessStep.ERROR
        assert outcome.error_kind == ErrorKind.UNEXPECTED


class TestPersistenceRetries:
    """Transient backend failures are retried with linear backoff."""

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(
        self, gate, sample_invitation, identity
    ):
        sleep = AsyncMock()
        orchestrator, _ = make_orchestrator(gate, sample_invitation, sleep=sleep)
        gate.invites.accept = AsyncMock(
            side_effect=[
                httpx.ConnectError("down"),
                httpx.ConnectError("down"),
                accepted_copy(sample_invitation, identity),
            ]
        )

        outcome = await orchestrator.run("tok-1", identity)

        assert outcome.succeeded
        assert gate.invites.accept.await_count == 3
        assert sleep.await_args_list == [call(1.0), call(2.0), call(0.5)]

    @pytest.mark.asyncio
    async def test_gives_up_after_three_attempts(self, gate, sample_invitation, identity):
        orchestrator, _ = make_orchestrator(gate, sample_invitation)
        gate.invites.accept = AsyncMock(side_effect=httpx.ConnectError("down"))

        outcome = await orchestrator.run("tok-1", identity)

        assert outcome.step == ProcessStep.ERROR
        assert outcome.error_kind == ErrorKind.PERSISTENCE_FAILURE
        assert outcome.retry_allowed is True
        assert gate.invites.accept.await_count == 3

    @pytest.mark.asyncio
    async def test_fetch_is_retried_too(self, gate, sample_invitation, identity):
        orchestrator, _ = make_orchestrator(gate, sample_invitation)
        gate.invites.get_by_token = AsyncMock(
            side_effect=[httpx.ReadTimeout("slow"), sample_invitation]
        )

        outcome = await orchestrator.run("tok-1", identity)

        assert outcome.succeeded


class TestDeadline:
    """The whole run races the acceptance deadline."""

    @pytest.fixture
    def fast_gate(self, gate):
        gate.config.time_unit = 0.01
        return gate

    @pytest.mark.asyncio
    async def test_slow_backend_times_out(self, fast_gate, sample_invitation, identity):
        async def slow_fetch(*args, **kwargs):
            await asyncio.sleep(5)
            return sample_invitation

        orchestrator, steps = make_orchestrator(fast_gate, sample_invitation)
        fast_gate.invites.get_by_token = AsyncMock(side_effect=slow_fetch)

        outcome = await orchestrator.run("tok-1", identity)

        assert outcome.step == ProcessStep.TIMEOUT
        assert outcome.error_kind == ErrorKind.TIMEOUT
        assert "taking longer than expected" in outcome.message
        assert outcome.retry_allowed is True
        assert steps == [ProcessStep.VERIFYING, ProcessStep.TIMEOUT]
        fast_gate.invites.accept.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_timeout_is_audited(self, fast_gate, sample_invitation, identity):
        async def slow_accept(*args, **kwargs):
            await asyncio.sleep(5)

        orchestrator, _ = make_orchestrator(fast_gate, sample_invitation)
        fast_gate.invites.accept = AsyncMock(side_effect=slow_accept)

        await orchestrator.run("tok-1", identity)

        audit_log = fast_gate.audit.log
        assert audit_log.await_args.args[0] == AuditAction.INVITE_ACCEPT_FAILED
        assert audit_log.await_args.kwargs["resource_id"] == sample_invitation.id
        assert audit_log.await_args.kwargs["metadata"]["error"] == "timeout"

    @pytest.mark.asyncio
    async def test_completion_cancels_the_deadline(
        self, fast_gate, sample_invitation, identity
    ):
        orchestrator, steps = make_orchestrator(fast_gate, sample_invitation)

        outcome = await orchestrator.run("tok-1", identity)
        # Outlive the 15 unit deadline.
        await asyncio.sleep(0.25)

        assert outcome.succeeded
        assert orchestrator.step == ProcessStep.COMPLETE
        assert ProcessStep.TIMEOUT not in steps
        assert orchestrator._deadline.fired is False

    @pytest.mark.asyncio
    async def test_completes_just_inside_the_deadline(
        self, gate, sample_invitation, identity
    ):
        # 15 unit deadline, the run finishes after 14.5 units of settling
        gate.config.time_unit = 0.1
        gate.config.settle_delay = 14.5
        orchestrator, steps = make_orchestrator(
            gate, sample_invitation, sleep=asyncio.sleep
        )

        outcome = await orchestrator.run("tok-1", identity)
        await asyncio.sleep(0.2)

        assert outcome.succeeded
        assert steps[-1] == ProcessStep.COMPLETE
        assert ProcessStep.TIMEOUT not in steps
        assert orchestrator._deadline.fired is False


class TestManualRetry:
    @pytest.mark.asyncio
    async def test_retry_restarts_from_verification(
        self, gate, sample_invitation, identity
    ):
        orchestrator, steps = make_orchestrator(gate, sample_invitation)
        gate.invites.get_by_token = AsyncMock(side_effect=[None, sample_invitation])

        first = await orchestrator.run("tok-1", identity)
        second = await orchestrator.retry()

        assert first.error_kind == ErrorKind.INVALID_TOKEN
        assert second.succeeded
        assert second.attempt == 2
        assert steps[-4:] == [
            ProcessStep.VERIFYING,
            ProcessStep.ACCEPTING,
            ProcessStep.PREPARING,
            ProcessStep.COMPLETE,
        ]

    @pytest.mark.asyncio
    async def test_retry_without_previous_run(self, gate):
        orchestrator, _ = make_orchestrator(gate, None)

        with pytest.raises(RuntimeError):
            await orchestrator.retry()


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_close_abandons_in_flight_run(self, gate, sample_invitation, identity):
        started = asyncio.Event()

        async def hanging_fetch(*args, **kwargs):
            started.set()
            await asyncio.sleep(60)

        orchestrator, steps = make_orchestrator(gate, sample_invitation)
        gate.invites.get_by_token = AsyncMock(side_effect=hanging_fetch)

        task = asyncio.create_task(orchestrator.run("tok-1", identity))
        await started.wait()
        orchestrator.close()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert orchestrator.outcome is None
        assert steps == [ProcessStep.VERIFYING]

    @pytest.mark.asyncio
    async def test_closed_orchestrator_refuses_runs(self, gate, identity):
        orchestrator, _ = make_orchestrator(gate, None)
        orchestrator.close()

        with pytest.raises(RuntimeError):
            await orchestrator.run("tok-1", identity)

    @pytest.mark.asyncio
    async def test_schedule_navigation(self, gate, sample_invitation, identity):
        gate.config.time_unit = 0.01
        orchestrator, _ = make_orchestrator(gate, sample_invitation)
        outcome = await orchestrator.run("tok-1", identity)
        navigate = Mock()

        target = orchestrator.schedule_navigation(navigate)
        navigate.assert_not_called()
        await asyncio.sleep(0.05)

        assert target == outcome.redirect_url
        navigate.assert_called_once_with(outcome.redirect_url)

    @pytest.mark.asyncio
    async def test_close_cancels_pending_navigation(
        self, gate, sample_invitation, identity
    ):
        gate.config.time_unit = 0.01
        orchestrator, _ = make_orchestrator(gate, sample_invitation)
        await orchestrator.run("tok-1", identity)
        navigate = Mock()

        orchestrator.schedule_navigation(navigate)
        orchestrator.close()
        await asyncio.sleep(0.05)

        navigate.assert_not_called()

    @pytest.mark.asyncio
    async def test_close_cancels_navigation_in_progress(
        self, gate, sample_invitation, identity
    ):
        gate.config.time_unit = 0.01
        orchestrator, _ = make_orchestrator(gate, sample_invitation)
        await orchestrator.run("tok-1", identity)
        started = asyncio.Event()
        finished = []

        async def navigate(url):
            started.set()
            await asyncio.sleep(5)
            finished.append(url)

        orchestrator.schedule_navigation(navigate)
        await asyncio.wait_for(started.wait(), timeout=1)
        orchestrator.close()
        await asyncio.sleep(0)

        assert finished == []
        assert orchestrator._navigation._callback is None

    @pytest.mark.asyncio
    async def test_fallback_is_dashboard_without_resource(self, gate, identity):
        orchestrator, _ = make_orchestrator(gate, None)
        await orchestrator.run("tok-1", identity)

        assert orchestrator.fallback_url == "/dashboard"

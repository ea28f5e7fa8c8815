"""Tests for the shipment proof lifecycle state machine.

Tests cover:
- The transition table, checked for every (from, to) pair
- Forward progress, failure from any non-terminal status, terminal states
- Idempotent same-status requests
- Terminal timestamps stamped from the injected clock
- Guarded writes losing a race to a concurrent modification
- Sealing from any upload-eligible status
"""

from itertools import product
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from shipproof.db.models.base import ShipmentStatus
from shipproof.services.errors import ConflictError, InvalidTransitionError, NotFoundError
from shipproof.services.lifecycle import ProofLifecycleService, TransitionResult
from tests.factories import FIXED_NOW, make_shipment, rowcount_result, scalar_result

CREATED = ShipmentStatus.CREATED
RECORDING = ShipmentStatus.RECORDING
PROCESSING = ShipmentStatus.PROCESSING
SEALED = ShipmentStatus.SEALED
FAILED = ShipmentStatus.FAILED

EXPECTED_EDGES = {
    (CREATED, RECORDING),
    (CREATED, FAILED),
    (RECORDING, PROCESSING),
    (RECORDING, FAILED),
    (PROCESSING, SEALED),
    (PROCESSING, FAILED),
}


def create_mock_session(rowcount: int = 1) -> AsyncMock:
    """Session whose UPDATE statements report ``rowcount`` matched rows."""
    session = AsyncMock()
    session.execute = AsyncMock(return_value=rowcount_result(rowcount))
    session.add = MagicMock()
    session.flush = AsyncMock()
    return session


@pytest.fixture
def lifecycle() -> ProofLifecycleService:
    return ProofLifecycleService(create_mock_session(), clock=lambda: FIXED_NOW)


class TestTransitionTable:
    """Tests for the static transition rules."""

    @pytest.mark.parametrize(("from_status", "to_status"), list(product(ShipmentStatus, repeat=2)))
    def test_every_pair_matches_table(self, lifecycle, from_status, to_status):
        """A transition is valid exactly when it is an edge or a same-status request."""
        expected = from_status == to_status or (from_status, to_status) in EXPECTED_EDGES
        assert lifecycle.is_valid_transition(from_status, to_status) is expected

    def test_terminal_states(self, lifecycle):
        """Only SEALED and FAILED are terminal."""
        terminal = {s for s in ShipmentStatus if lifecycle.is_terminal_state(s)}
        assert terminal == {SEALED, FAILED}

    def test_failed_reachable_from_every_non_terminal_status(self, lifecycle):
        for status in (CREATED, RECORDING, PROCESSING):
            assert FAILED in lifecycle.allowed_transitions(status)

    def test_no_backward_transitions(self, lifecycle):
        """Skipping ahead or moving back is rejected."""
        assert not lifecycle.is_valid_transition(RECORDING, CREATED)
        assert not lifecycle.is_valid_transition(CREATED, PROCESSING)
        assert not lifecycle.is_valid_transition(CREATED, SEALED)
        assert not lifecycle.is_valid_transition(SEALED, PROCESSING)

    def test_check_transition_error_detail(self, lifecycle):
        """The error names the current and requested status and what was allowed."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            lifecycle.check_transition(CREATED, SEALED)

        assert exc_info.value.kind == "invalid_transition"
        assert exc_info.value.detail == {
            "current_status": "CREATED",
            "requested_status": "SEALED",
            "allowed": ["FAILED", "RECORDING"],
        }

    def test_check_transition_from_terminal_lists_nothing(self, lifecycle):
        with pytest.raises(InvalidTransitionError) as exc_info:
            lifecycle.check_transition(SEALED, FAILED)

        assert exc_info.value.detail["allowed"] == []


class TestRequestTransition:
    """Tests for request_transition with a mocked session."""

    @pytest.mark.asyncio
    async def test_forward_transition_updates_status(self):
        session = create_mock_session()
        lifecycle = ProofLifecycleService(session, clock=lambda: FIXED_NOW)
        shipment = make_shipment(CREATED)

        result = await lifecycle.request_transition(shipment, RECORDING)

        assert result == TransitionResult(
            shipment_id=shipment.shipment_id,
            previous_status=CREATED,
            new_status=RECORDING,
            changed=True,
        )
        assert shipment.status == RECORDING
        assert shipment.updated_at == FIXED_NOW
        assert shipment.sealed_at is None
        session.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_full_forward_path(self):
        """CREATED -> RECORDING -> PROCESSING -> SEALED stamps sealed_at at the end."""
        lifecycle = ProofLifecycleService(create_mock_session(), clock=lambda: FIXED_NOW)
        shipment = make_shipment(CREATED)

        for status in (RECORDING, PROCESSING, SEALED):
            await lifecycle.request_transition(shipment, status)

        assert shipment.status == SEALED
        assert shipment.sealed_at == FIXED_NOW
        assert shipment.failed_at is None

    @pytest.mark.asyncio
    async def test_failure_stamps_failed_at(self):
        lifecycle = ProofLifecycleService(create_mock_session(), clock=lambda: FIXED_NOW)
        shipment = make_shipment(RECORDING)

        await lifecycle.request_transition(shipment, FAILED)

        assert shipment.status == FAILED
        assert shipment.failed_at == FIXED_NOW

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", list(ShipmentStatus))
    async def test_same_status_is_idempotent(self, status):
        """Requesting the current status succeeds without writing, even when terminal."""
        session = create_mock_session()
        lifecycle = ProofLifecycleService(session)
        shipment = make_shipment(status)

        result = await lifecycle.request_transition(shipment, status)

        assert result.changed is False
        assert result.new_status == status
        assert shipment.status == status
        session.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_transition_does_not_write(self):
        session = create_mock_session()
        lifecycle = ProofLifecycleService(session)
        shipment = make_shipment(CREATED)

        with pytest.raises(InvalidTransitionError):
            await lifecycle.request_transition(shipment, PROCESSING)

        assert shipment.status == CREATED
        session.execute.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("terminal", [SEALED, FAILED])
    async def test_terminal_states_reject_every_change(self, terminal):
        lifecycle = ProofLifecycleService(create_mock_session())

        for requested in ShipmentStatus:
            if requested == terminal:
                continue
            shipment = make_shipment(terminal)
            with pytest.raises(InvalidTransitionError):
                await lifecycle.request_transition(shipment, requested)
            assert shipment.status == terminal

    @pytest.mark.asyncio
    async def test_changes_written_with_transition(self):
        lifecycle = ProofLifecycleService(create_mock_session(), clock=lambda: FIXED_NOW)
        shipment = make_shipment(CREATED, awb="OLD-1")

        result = await lifecycle.request_transition(
            shipment, CREATED, changes={"awb": "NEW-1"}
        )

        assert result.changed is False
        assert shipment.awb == "NEW-1"
        assert shipment.status == CREATED


class TestGuardedUpdate:
    """Tests for the status-conditioned write."""

    @pytest.mark.asyncio
    async def test_concurrent_modification_raises_conflict(self):
        """Zero matched rows means another writer changed the status first."""
        lifecycle = ProofLifecycleService(create_mock_session(rowcount=0))
        shipment = make_shipment(RECORDING)

        with pytest.raises(ConflictError) as exc_info:
            await lifecycle.request_transition(shipment, PROCESSING)

        assert exc_info.value.kind == "conflict"
        assert exc_info.value.detail["observed_status"] == "RECORDING"
        assert shipment.status == RECORDING

    @pytest.mark.asyncio
    async def test_update_conditioned_on_observed_status(self):
        session = create_mock_session()
        lifecycle = ProofLifecycleService(session)
        shipment = make_shipment(PROCESSING)

        await lifecycle.guarded_update(shipment, {"status": SEALED})

        stmt = session.execute.await_args.args[0]
        compiled = str(stmt)
        assert "WHERE shipments.shipment_id" in compiled
        assert "shipments.status" in compiled


class TestSeal:
    """Tests for sealing through proof upload."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [CREATED, RECORDING, PROCESSING])
    async def test_seal_from_upload_eligible_status(self, status):
        lifecycle = ProofLifecycleService(create_mock_session(), clock=lambda: FIXED_NOW)
        shipment = make_shipment(status)

        result = await lifecycle.seal(shipment)

        assert result.previous_status == status
        assert result.new_status == SEALED
        assert shipment.status == SEALED
        assert shipment.sealed_at == FIXED_NOW

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [SEALED, FAILED])
    async def test_seal_from_terminal_status_fails(self, status):
        session = create_mock_session()
        lifecycle = ProofLifecycleService(session)
        shipment = make_shipment(status)

        with pytest.raises(InvalidTransitionError):
            await lifecycle.seal(shipment)

        session.execute.assert_not_awaited()


class TestGetShipment:
    """Tests for loading shipments."""

    @pytest.mark.asyncio
    async def test_not_found(self):
        session = AsyncMock()
        session.execute = AsyncMock(return_value=scalar_result(None))
        lifecycle = ProofLifecycleService(session)
        shipment_id = uuid4()

        with pytest.raises(NotFoundError) as exc_info:
            await lifecycle.get_shipment(shipment_id, uuid4())

        assert exc_info.value.detail == {"resource": "Shipment", "id": str(shipment_id)}

    @pytest.mark.asyncio
    async def test_for_update_locks_row(self):
        shipment = make_shipment(CREATED)
        session = AsyncMock()
        session.execute = AsyncMock(return_value=scalar_result(shipment))
        lifecycle = ProofLifecycleService(session)

        loaded = await lifecycle.get_shipment(shipment.shipment_id, for_update=True)

        assert loaded is shipment
        stmt = session.execute.await_args.args[0]
        assert stmt._for_update_arg is not None

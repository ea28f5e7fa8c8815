"""Tests for share-link issuance, validation and cleanup.

Tests cover:
- Token format and entropy (64 hex characters by default)
- Expiry computed from the injected clock
- Validation of unknown and expired tokens
- Rejection of non-positive or non-integer validity
- Revocation and expired-link cleanup
"""

import re
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from shipproof.db.models.share_links import ShareLink
from shipproof.services.errors import (
    ConflictError,
    ExpiredError,
    InvalidArgumentError,
    NotFoundError,
)
from shipproof.services.share_links import (
    MAX_EXPIRES_IN_HOURS,
    ShareLinkService,
    generate_token,
)
from tests.factories import (
    FIXED_NOW,
    make_share_link,
    rowcount_result,
    rows_result,
    scalar_result,
)

HEX_64 = re.compile(r"^[0-9a-f]{64}$")


def create_mock_session(*results) -> AsyncMock:
    """Session returning ``results`` from successive execute() calls."""
    session = AsyncMock()
    session.execute = AsyncMock(side_effect=list(results))
    session.add = MagicMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.delete = AsyncMock()
    return session


class TestTokenGeneration:
    """Tests for token generation."""

    def test_default_token_is_64_hex_chars(self):
        assert HEX_64.match(generate_token())

    def test_tokens_are_unique(self):
        tokens = {generate_token() for _ in range(200)}
        assert len(tokens) == 200

    def test_longer_tokens(self):
        assert len(generate_token(48)) == 96

    def test_service_rejects_weak_tokens(self):
        with pytest.raises(ValueError, match="at least 32"):
            ShareLinkService(AsyncMock(), token_bytes=16)


class TestIssue:
    """Tests for ShareLinkService.issue."""

    @pytest.mark.asyncio
    async def test_issue_sets_expiry_from_clock(self):
        proof_video_id = uuid4()
        session = create_mock_session(scalar_result(proof_video_id))
        service = ShareLinkService(session, clock=lambda: FIXED_NOW)

        link = await service.issue(proof_video_id, 24)

        assert isinstance(link, ShareLink)
        assert link.proof_video_id == proof_video_id
        assert link.expires_at == FIXED_NOW + timedelta(hours=24)
        assert HEX_64.match(link.token)
        session.add.assert_called_once_with(link)
        session.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_consecutive_links_get_distinct_tokens(self):
        proof_video_id = uuid4()
        session = create_mock_session(
            scalar_result(proof_video_id), scalar_result(proof_video_id)
        )
        service = ShareLinkService(session, clock=lambda: FIXED_NOW)

        first = await service.issue(proof_video_id, 1)
        second = await service.issue(proof_video_id, 1)

        assert first.token != second.token

    @pytest.mark.asyncio
    @pytest.mark.parametrize("hours", [0, -1, True, 1.5, "24", None])
    async def test_invalid_validity_rejected(self, hours):
        session = create_mock_session()

        with pytest.raises(InvalidArgumentError):
            await ShareLinkService(session).issue(uuid4(), hours)

        session.execute.assert_not_awaited()
        session.add.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("hours", [MAX_EXPIRES_IN_HOURS + 1, 100_000_000, 10**30])
    async def test_validity_above_maximum_rejected(self, hours):
        session = create_mock_session()

        with pytest.raises(InvalidArgumentError) as exc_info:
            await ShareLinkService(session).issue(uuid4(), hours)

        assert exc_info.value.detail["max_expires_in_hours"] == MAX_EXPIRES_IN_HOURS
        session.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_configured_maximum(self):
        proof_video_id = uuid4()
        session = create_mock_session(scalar_result(proof_video_id))
        service = ShareLinkService(session, max_expires_in_hours=48, clock=lambda: FIXED_NOW)

        link = await service.issue(proof_video_id, 48)
        assert link.expires_at == FIXED_NOW + timedelta(hours=48)

        with pytest.raises(InvalidArgumentError):
            await service.issue(proof_video_id, 49)

    @pytest.mark.asyncio
    async def test_unknown_video(self):
        session = create_mock_session(scalar_result(None))

        with pytest.raises(NotFoundError) as exc_info:
            await ShareLinkService(session).issue(uuid4(), 24, organization_id=uuid4())

        assert exc_info.value.detail["resource"] == "ProofVideo"
        session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_organization_scope_joins_shipments(self):
        proof_video_id = uuid4()
        session = create_mock_session(scalar_result(proof_video_id))

        await ShareLinkService(session).issue(proof_video_id, 1, organization_id=uuid4())

        query = str(session.execute.await_args.args[0])
        assert "JOIN shipments" in query
        assert "shipments.organization_id" in query

    @pytest.mark.asyncio
    async def test_token_collision_is_conflict(self):
        session = create_mock_session(scalar_result(uuid4()))
        session.flush = AsyncMock(
            side_effect=IntegrityError("INSERT INTO share_links", {}, Exception("duplicate"))
        )

        with pytest.raises(ConflictError):
            await ShareLinkService(session).issue(uuid4(), 24)

        session.rollback.assert_awaited_once()


class TestValidate:
    """Tests for ShareLinkService.validate."""

    @pytest.mark.asyncio
    async def test_valid_token_returns_link(self):
        link = make_share_link(expires_at=FIXED_NOW + timedelta(hours=1))
        session = create_mock_session(scalar_result(link))

        result = await ShareLinkService(session, clock=lambda: FIXED_NOW).validate(link.token)

        assert result is link
        assert result.proof_video.shipment.awb == "AWB-1000"

    @pytest.mark.asyncio
    async def test_unknown_token(self):
        session = create_mock_session(scalar_result(None))

        with pytest.raises(NotFoundError) as exc_info:
            await ShareLinkService(session).validate("0" * 64)

        # Only a prefix of the token is echoed back
        assert exc_info.value.detail["id"] == "00000000..."

    @pytest.mark.asyncio
    async def test_expired_token(self):
        link = make_share_link(expires_at=FIXED_NOW - timedelta(seconds=1))
        session = create_mock_session(scalar_result(link))

        with pytest.raises(ExpiredError) as exc_info:
            await ShareLinkService(session, clock=lambda: FIXED_NOW).validate(link.token)

        assert exc_info.value.kind == "expired"

    @pytest.mark.asyncio
    async def test_token_valid_at_exact_expiry(self):
        link = make_share_link(expires_at=FIXED_NOW)
        session = create_mock_session(scalar_result(link))

        result = await ShareLinkService(session, clock=lambda: FIXED_NOW).validate(link.token)

        assert result is link

    @pytest.mark.asyncio
    async def test_expiry_follows_the_clock(self):
        """A link issued for one hour validates at +59 minutes and fails at +61."""
        now = [FIXED_NOW]
        proof_video_id = uuid4()
        session = create_mock_session(scalar_result(proof_video_id))
        service = ShareLinkService(session, clock=lambda: now[0])

        link = await service.issue(proof_video_id, 1)

        session.execute = AsyncMock(return_value=scalar_result(link))
        now[0] = FIXED_NOW + timedelta(minutes=59)
        assert await service.validate(link.token) is link

        now[0] = FIXED_NOW + timedelta(minutes=61)
        with pytest.raises(ExpiredError):
            await service.validate(link.token)


class TestRevokeAndList:
    """Tests for revoke, get and list_links."""

    @pytest.mark.asyncio
    async def test_revoke_deletes_link(self):
        link = make_share_link()
        session = create_mock_session(scalar_result(link))

        await ShareLinkService(session).revoke(link.share_link_id, uuid4())

        session.delete.assert_awaited_once_with(link)
        session.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_revoke_unknown_link(self):
        session = create_mock_session(scalar_result(None))

        with pytest.raises(NotFoundError):
            await ShareLinkService(session).revoke(uuid4(), uuid4())

        session.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_list_links(self):
        links = [make_share_link(), make_share_link(token="e" * 64)]
        session = create_mock_session(rows_result(links))

        assert await ShareLinkService(session).list_links(uuid4()) == links


class TestCleanupExpired:
    """Tests for ShareLinkService.cleanup_expired."""

    @pytest.mark.asyncio
    async def test_returns_removed_count_and_commits(self):
        session = create_mock_session(rowcount_result(3))

        removed = await ShareLinkService(session, clock=lambda: FIXED_NOW).cleanup_expired()

        assert removed == 3
        session.commit.assert_awaited_once()
        stmt = session.execute.await_args.args[0]
        assert str(stmt).startswith("DELETE FROM share_links")

    @pytest.mark.asyncio
    async def test_nothing_to_remove(self):
        session = create_mock_session(rowcount_result(0))

        assert await ShareLinkService(session).cleanup_expired() == 0

"""Shipproof command-line interface.

Operational commands meant for cron jobs and first-time setup:

    shipproof cleanup-expired-links
    shipproof create-account --organization "Acme" --email ops@acme.com --name "Ops"
    shipproof rotate-api-key --user-id "$USER_ID"
    shipproof ensure-bucket
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import TYPE_CHECKING
from uuid import UUID

from shipproof.db import close_engine, get_async_session
from shipproof.services.accounts import AccountService
from shipproof.services.errors import ShipproofError
from shipproof.services.share_links import ShareLinkService
from shipproof.services.storage import ObjectStoreClient, StorageError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Sequence

    from shipproof.core.config import Settings

logger = logging.getLogger(__name__)


async def _cleanup_expired_links(settings: Settings) -> int:
    async with get_async_session() as session:
        service = ShareLinkService(session, token_bytes=settings.share_links.token_bytes)
        removed = await service.cleanup_expired()
    print(f"Removed {removed} expired share link(s)")
    return 0


async def _create_account(organization: str, email: str, name: str) -> int:
    async with get_async_session() as session:
        account = await AccountService(session).register(organization, email, name)

    print(f"Organization: {account.organization_id}")
    print(f"User:         {account.user_id} ({account.email})")
    print(f"API key:      {account.api_key}")
    print("Store the API key now; it cannot be shown again.")
    return 0


async def _rotate_api_key(user_id: UUID) -> int:
    async with get_async_session() as session:
        api_key = await AccountService(session).issue_api_key(user_id)
        await session.commit()

    print(f"User:    {user_id}")
    print(f"API key: {api_key}")
    print("The previous key no longer works. Store this one now; it cannot be shown again.")
    return 0


def _ensure_bucket(settings: Settings) -> int:
    client = ObjectStoreClient.from_settings(settings.s3)
    created = client.ensure_bucket()
    state = "created" if created else "already exists"
    print(f"Bucket {settings.s3.bucket}: {state}")
    return 0


async def _run_async(coro: Awaitable[int]) -> int:
    try:
        return await coro
    finally:
        await close_engine()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shipproof",
        description="Shipproof operational commands",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser(
        "cleanup-expired-links",
        help="Delete share links whose expiry has passed",
    )

    create_account = subparsers.add_parser(
        "create-account",
        help="Create an organization with its first user and print the API key",
    )
    create_account.add_argument("--organization", required=True, help="Organization name")
    create_account.add_argument("--email", required=True, help="User email")
    create_account.add_argument("--name", required=True, help="User display name")

    rotate_key = subparsers.add_parser(
        "rotate-api-key",
        help="Replace a user's API key and print the new one",
    )
    rotate_key.add_argument("--user-id", required=True, type=UUID, help="User ID")

    subparsers.add_parser(
        "ensure-bucket",
        help="Create the proof video bucket if it does not exist",
    )

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the shipproof console script."""
    from shipproof.core.settings import get_settings

    args = build_parser().parse_args(argv)

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "cleanup-expired-links":
            return asyncio.run(_run_async(_cleanup_expired_links(settings)))
        if args.command == "create-account":
            return asyncio.run(
                _run_async(_create_account(args.organization, args.email, args.name))
            )
        if args.command == "rotate-api-key":
            return asyncio.run(_run_async(_rotate_api_key(args.user_id)))
        if args.command == "ensure-bucket":
            return _ensure_bucket(settings)
    except ShipproofError as e:
        logger.error("%s: %s", e.kind, e.message)
        print(f"error: {e.message}", file=sys.stderr)
        return 1
    except StorageError as e:
        logger.error("Storage operation %s failed: %s", e.operation, e.message)
        print(f"error: {e.message}", file=sys.stderr)
        return 1

    return 2


if __name__ == "__main__":
    sys.exit(main())

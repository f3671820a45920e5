"""Command-line interface for Inbox Bridge.

This module provides the main entry point for the CLI application.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

import structlog

from inbox_bridge import __version__
from inbox_bridge.auth import BearerTokenCodec
from inbox_bridge.config import Settings, get_settings
from inbox_bridge.exceptions import InboxBridgeError
from inbox_bridge.gmail import GmailAdapter
from inbox_bridge.graph import GraphAdapter
from inbox_bridge.log import configure_logging
from inbox_bridge.models import ProviderKind
from inbox_bridge.pipeline import MailboxService
from inbox_bridge.store import IdentityRepository
from inbox_bridge.utils import months_ago

logger = structlog.get_logger()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="inbox-bridge", description="Inbox Bridge")
    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy URL of the credential store (default: settings database_url)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create the identity/credential schema")

    token_parser = subparsers.add_parser("token", help="Bearer token helpers")
    token_sub = token_parser.add_subparsers(dest="token_command", required=True)
    issue_parser = token_sub.add_parser("issue", help="Mint a bearer token for an existing identity")
    issue_parser.add_argument("--email", required=True, help="Primary email of the identity")
    issue_parser.add_argument(
        "--ttl",
        type=int,
        default=None,
        help="Token lifetime in seconds (default: settings jwt_ttl_seconds)",
    )

    emails_parser = subparsers.add_parser("emails", help="Mailbox helpers")
    emails_sub = emails_parser.add_subparsers(dest="emails_command", required=True)
    fetch_parser = emails_sub.add_parser("fetch", help="Print normalized emails as JSON lines")
    fetch_parser.add_argument("--email", required=True, help="Primary email of the identity")
    fetch_parser.add_argument(
        "--provider",
        choices=[k.value for k in ProviderKind] + ["all"],
        default="all",
        help="Provider to fetch from (default: every linked provider)",
    )
    fetch_parser.add_argument(
        "--months",
        type=int,
        default=None,
        help="Look-back window in months (default: settings mailbox_lookback_months)",
    )

    return parser


def _repository(args: argparse.Namespace, settings: Settings) -> IdentityRepository:
    return IdentityRepository(args.database_url or settings.database_url)


def _cmd_init_db(args: argparse.Namespace, settings: Settings) -> int:
    repo = _repository(args, settings)
    repo.initialize()
    print(f"Initialized credential store at {args.database_url or settings.database_url}")
    return 0


def _cmd_token_issue(args: argparse.Namespace, settings: Settings) -> int:
    repo = _repository(args, settings)
    identity = repo.find_by_email(args.email)
    if identity is None:
        print(f"No identity found for {args.email}", file=sys.stderr)
        return 1

    print(BearerTokenCodec(settings).issue(identity, ttl=args.ttl))
    return 0


async def _cmd_emails_fetch(args: argparse.Namespace, settings: Settings) -> int:
    repo = _repository(args, settings)
    identity = await asyncio.to_thread(repo.find_by_email, args.email)
    if identity is None:
        print(f"No identity found for {args.email}", file=sys.stderr)
        return 1

    mailbox = MailboxService([GmailAdapter(settings), GraphAdapter(settings)], settings)
    since = months_ago(args.months) if args.months is not None else None

    if args.provider == "all":
        emails = await mailbox.get_all_normalized_emails(identity, since)
    else:
        emails = await mailbox.get_normalized_emails(identity, ProviderKind(args.provider), since)

    for email in emails:
        print(json.dumps(email.to_wire(), ensure_ascii=False))
    logger.info("emails_fetch_complete", email_count=len(emails), provider=args.provider)
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point for the Inbox Bridge CLI.

    Args:
        args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    if args is None:
        args = sys.argv[1:]

    settings = get_settings()
    configure_logging(settings)

    logger.info("inbox_bridge_started", version=__version__, debug=settings.debug)

    parser = _build_parser()
    parsed = parser.parse_args(args)

    try:
        if parsed.command == "init-db":
            return _cmd_init_db(parsed, settings)
        if parsed.command == "token" and parsed.token_command == "issue":
            return _cmd_token_issue(parsed, settings)
        if parsed.command == "emails" and parsed.emails_command == "fetch":
            return asyncio.run(_cmd_emails_fetch(parsed, settings))
    except InboxBridgeError as exc:
        logger.error("command_failed", command=parsed.command, error=str(exc))
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    logger.error("unknown_command", command=parsed.command)
    return 2


if __name__ == "__main__":
    sys.exit(main())

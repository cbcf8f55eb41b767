from __future__ import annotations

import argparse
import asyncio
import sys

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chatgate.core.config import get_settings
from chatgate.core.errors import ChatGateError
from chatgate.persistence.db import build_engine, build_sessionmaker
from chatgate.persistence.repos import whitelist as whitelist_repo
from chatgate.services.client_ip import is_valid_ip


def _build_parser() -> argparse.ArgumentParser:
    # Bootstrap path for the first allowlisted network, before anyone can reach the admin console.
    parser = argparse.ArgumentParser(description="Manage the IP allowlist")
    sub = parser.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add", help="Allow an IP address")
    add.add_argument("ip_address")
    add.add_argument("--description", default=None)
    add.add_argument("--added-by", default="cli")

    sub.add_parser("list", help="List allowlist entries")

    for name, help_text in (("enable", "Reactivate an entry"), ("disable", "Deactivate an entry")):
        toggle = sub.add_parser(name, help=help_text)
        toggle.add_argument("ip_address")
    return parser


async def run(args: argparse.Namespace, sessionmaker: async_sessionmaker[AsyncSession]) -> int:
    async with sessionmaker() as session:
        if args.command == "list":
            for entry in await whitelist_repo.list_entries(session):
                state = "active" if entry.is_active else "inactive"
                print(f"{entry.ip_address}\t{state}\t{entry.description or ''}")
            return 0

        if not is_valid_ip(args.ip_address):
            print(f"not a valid IP address: {args.ip_address}", file=sys.stderr)
            return 2

        existing = await whitelist_repo.get_by_ip(session, args.ip_address)
        if args.command == "add":
            if existing is not None:
                print(f"{args.ip_address} is already in the allowlist", file=sys.stderr)
                return 1
            entry = await whitelist_repo.add_entry(
                session,
                ip_address=args.ip_address,
                description=args.description,
                added_by=args.added_by,
            )
            await session.commit()
            print(f"added {entry.ip_address} id={entry.id}")
            return 0

        if existing is None:
            print(f"{args.ip_address} is not in the allowlist", file=sys.stderr)
            return 1
        await whitelist_repo.set_active(session, existing.id, args.command == "enable")
        await session.commit()
        print(f"{args.command}d {args.ip_address}")
        return 0


async def _main(args: argparse.Namespace) -> int:
    engine = build_engine(get_settings())
    try:
        return await run(args, build_sessionmaker(engine))
    finally:
        await engine.dispose()


def main() -> int:
    args = _build_parser().parse_args()
    try:
        return asyncio.run(_main(args))
    except (ChatGateError, SQLAlchemyError) as exc:
        print(f"allowlist_ip failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())

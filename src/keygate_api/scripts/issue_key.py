"""Issue a license key directly into the state file.

Meant for bootstrapping before any admin session exists. Do not run it while
the server is writing the same file; the server's next save would overwrite it.
"""

import argparse
import asyncio
import logging
import sys

from keygate_api.config import get_settings
from keygate_api.exceptions import KeyGateError
from keygate_api.services.audit_service import AuditAction, AuditService
from keygate_api.services.key_store import KeyStore
from keygate_api.services.persistence_gateway import PersistenceGateway

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Issue a license key offline.")
    parser.add_argument("--note", default="", help="Free-form description")
    parser.add_argument(
        "--expiry-days",
        type=int,
        default=settings.default_expiry_days,
        help="Days until the key expires",
    )
    parser.add_argument(
        "--max-users",
        type=int,
        default=settings.default_max_users,
        help="Number of users that may bind the key",
    )
    return parser


async def issue_key(note: str, expiry_days: int, max_users: int) -> str:
    """Load state, add one key, audit it and save.

    Returns:
        The generated key string
    """
    settings = get_settings()
    gateway = PersistenceGateway(settings.data_file, debug=settings.debug)
    store = gateway.load()

    record = KeyStore(
        store,
        key_length=settings.key_length,
        max_expiry_days=settings.max_expiry_days,
    ).generate(
        note=note,
        expiry_days=expiry_days,
        max_users=max_users,
        created_by="cli",
    )
    AuditService(store, cap=settings.log_cap, trim=settings.log_trim).log(
        AuditAction.KEY_GENERATE,
        user="cli",
        key=record.key,
        details={"note": note, "expiry_days": expiry_days, "max_users": max_users},
    )

    if not await gateway.save(store):
        raise RuntimeError(f"Could not write state file {settings.data_file}")
    return record.key


def main(argv: list[str] | None = None) -> int:
    """Console entry point."""
    logging.basicConfig(level=logging.WARNING)
    args = build_parser().parse_args(argv)

    try:
        key = asyncio.run(issue_key(args.note, args.expiry_days, args.max_users))
    except (KeyGateError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(key)
    return 0


if __name__ == "__main__":
    sys.exit(main())

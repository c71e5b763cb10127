"""
Command-line provisioning.

    python -m app.cli create-tenant --email admin@acme.com --name "Ana" \
        --tenant-name "Acme S.A." --password secret123

Scripts must provision through this entry point (and therefore through
ProvisioningService) instead of inserting rows directly.
"""

import argparse
import asyncio
import getpass
import logging
import sys
from datetime import timedelta

from app.auth import credential_store
from app.config import settings
from app.database import AsyncSessionLocal
from app.exceptions import GridError
from app.services.directory_service import IdentityDirectory
from app.services.provisioning_service import ProvisioningService
from app.services.token_service import TokenService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gridmanager")
    subparsers = parser.add_subparsers(dest="command", required=True)

    create = subparsers.add_parser("create-tenant", help="Provision a tenant with its admin user")
    create.add_argument("--email", required=True)
    create.add_argument("--name", required=True, help="Admin display name")
    create.add_argument("--tenant-name", required=True)
    create.add_argument("--password", help="Prompted for when omitted")
    return parser


async def create_tenant(email: str, name: str, tenant_name: str, password: str) -> int:
    tokens = TokenService(
        secret_key=settings.secret_key,
        access_ttl=timedelta(minutes=settings.access_token_expire_minutes),
        refresh_ttl=timedelta(days=settings.refresh_token_expire_days),
    )
    async with AsyncSessionLocal() as db:
        service = ProvisioningService(IdentityDirectory(db), credential_store, tokens, trial_days=settings.trial_days)
        try:
            result = await service.register_tenant(email, name, password, tenant_name)
        except GridError as e:
            print(f"error: {e.message} ({e.error_code.value})", file=sys.stderr)
            return 1

    print(f"tenant {result.tenant.slug} ({result.tenant.id}) created; admin {result.user.email} ({result.user.id})")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")

    if args.command == "create-tenant":
        password = args.password or getpass.getpass("Admin password: ")
        return asyncio.run(create_tenant(args.email, args.name, args.tenant_name, password))
    return 2


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Authorization admin CLI

Usage:
    # Upsert every catalog permission
    python scripts/authz_admin.py sync

    # Sync, then create/extend the default roles
    python scripts/authz_admin.py sync --seed-roles

    # Show a user's flattened permissions
    python scripts/authz_admin.py user-permissions 42

    # Issue an access token for local testing
    python scripts/authz_admin.py token 42

Environment:
    DATABASE_URL, SECRET_KEY - same settings as the API
"""
import argparse
import asyncio
import json
import logging
import sys

from app.core.database import get_db_session
from app.core.exceptions import AuthzBaseError
from app.core.security import create_access_token
from app.services.permission_management_service import PermissionManagementService
from app.services.permission_service import PermissionService
from app.services.role_service import RoleService

logger = logging.getLogger("authz_admin")


async def cmd_sync(args) -> int:
    async with get_db_session() as db:
        result = await PermissionService(db).sync_permissions()
        print(f"Permissions: {result['created']} created, {result['updated']} updated, {result['total']} total")
        for error in result["errors"]:
            print(f"  ! {error}")

        if args.seed_roles:
            seeded = await RoleService(db).seed_default_roles()
            print(f"Roles: {seeded['created']} created, {seeded['updated']} updated")

    return 1 if result["errors"] else 0


async def cmd_user_permissions(args) -> int:
    async with get_db_session() as db:
        permissions = await PermissionManagementService(db).get_user_permissions(args.user_id)
    print(json.dumps(permissions, indent=2))
    return 0


def cmd_token(args) -> int:
    print(create_access_token({"sub": args.user_id}))
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Authorization admin CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser("sync", help="Sync catalog permissions")
    sync_parser.add_argument("--seed-roles", action="store_true", help="Also seed default roles")

    perms_parser = subparsers.add_parser("user-permissions", help="Show a user's permissions")
    perms_parser.add_argument("user_id", type=int)

    token_parser = subparsers.add_parser("token", help="Issue an access token")
    token_parser.add_argument("user_id", type=int)

    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        if args.command == "sync":
            return asyncio.run(cmd_sync(args))
        if args.command == "user-permissions":
            return asyncio.run(cmd_user_permissions(args))
        return cmd_token(args)
    except AuthzBaseError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

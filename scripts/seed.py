#!/usr/bin/env python3
"""Seed the administrator role and the first login account.

The ``Administrator`` role is (re)granted every key in the permission
catalog, so re-running after new modules ship keeps the admin complete.
The admin user is only created when no user with that email exists.

Usage:
    python scripts/seed.py --email admin@example.com --password 'S3cret!pass'
    python scripts/seed.py --email admin@example.com   # password from SEED_ADMIN_PASSWORD
    python scripts/seed.py --roles-only                # refresh the role, no user

Requires .env at project root (DATABASE_URL, JWT_SECRET).
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

# ── Path setup ────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from dotenv import load_dotenv

load_dotenv(PROJECT_ROOT / ".env")

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("seed")

from sqlalchemy import select  # noqa: E402

from hrportal.auth.models import Role, User  # noqa: E402
from hrportal.auth.permissions import DEFAULT_CATALOG  # noqa: E402
from hrportal.auth.service import hash_password  # noqa: E402
from hrportal.common.constants import MIN_PASSWORD_LENGTH  # noqa: E402
from hrportal.database import async_session_factory, engine  # noqa: E402

ADMIN_ROLE = "Administrator"


async def seed_admin_role(session) -> Role:
    keys = sorted(DEFAULT_CATALOG.keys)
    role = (await session.execute(select(Role).where(Role.name == ADMIN_ROLE))).scalar_one_or_none()
    if role is None:
        role = Role(name=ADMIN_ROLE, description="Full access to every module.", permissions=keys)
        session.add(role)
        logger.info("Created role %r with %d permissions", ADMIN_ROLE, len(keys))
    else:
        role.permissions = keys
        logger.info("Refreshed role %r with %d permissions", ADMIN_ROLE, len(keys))
    await session.flush()
    return role


async def seed_admin_user(session, role: Role, email: str, password: str, name: str) -> None:
    existing = (await session.execute(select(User).where(User.email == email))).scalar_one_or_none()
    if existing is not None:
        logger.info("User %s already exists — leaving it unchanged", email)
        return
    session.add(User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        role_id=role.id,
        is_active=True,
    ))
    await session.flush()
    logger.info("Created admin user %s", email)


async def run(args: argparse.Namespace) -> int:
    password = args.password or os.getenv("SEED_ADMIN_PASSWORD", "")
    if not args.roles_only and len(password) < MIN_PASSWORD_LENGTH:
        logger.error(
            "Admin password must be at least %d characters (use --password or SEED_ADMIN_PASSWORD)",
            MIN_PASSWORD_LENGTH,
        )
        return 1

    try:
        async with async_session_factory() as session:
            async with session.begin():
                role = await seed_admin_role(session)
                if not args.roles_only:
                    await seed_admin_user(session, role, args.email, password, args.name)
    finally:
        await engine.dispose()
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Seed the Administrator role and initial admin user",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--email", default=os.getenv("SEED_ADMIN_EMAIL", "admin@example.com"))
    parser.add_argument("--password", default=None, help="Admin password (min 8 characters)")
    parser.add_argument("--name", default="Administrator")
    parser.add_argument("--roles-only", action="store_true", help="Only create/refresh the role")
    args = parser.parse_args()
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()

"""
Seed Super Admin

Creates the initial super admin account. Credentials come from the
environment, never from source:

    SUPER_ADMIN_EMAIL, SUPER_ADMIN_PASSWORD, SUPER_ADMIN_NAME (optional)

Usage:
    pip install -e .
    SUPER_ADMIN_EMAIL=... SUPER_ADMIN_PASSWORD=... python apps/api/scripts/seed_super_admin.py
"""

import asyncio
import os
import sys

from app.core.database import async_session_maker, engine
from app.core.security import hash_password
from app.modules.super_admins.repository import SuperAdminRepository

MIN_PASSWORD_LENGTH = 12


async def seed_super_admin(email: str, password: str, name: str) -> None:
    """Create the super admin if it doesn't exist."""
    async with async_session_maker() as db:
        existing = await SuperAdminRepository.get_by_email(db, email)
        if existing:
            print(f"Super admin already exists: {existing.email}")
            print(f"  ID: {existing.id}")
            return

        super_admin = await SuperAdminRepository.create(
            db,
            email=email,
            name=name,
            password_hash=hash_password(password),
        )
        await db.commit()

        print("Super admin created successfully!")
        print(f"  Email: {super_admin.email}")
        print(f"  Name: {super_admin.name}")
        print(f"  ID: {super_admin.id}")

    await engine.dispose()


def main() -> int:
    email = os.environ.get("SUPER_ADMIN_EMAIL", "").strip()
    password = os.environ.get("SUPER_ADMIN_PASSWORD", "")
    name = os.environ.get("SUPER_ADMIN_NAME", "Super Admin").strip()

    if not email or not password:
        print("SUPER_ADMIN_EMAIL and SUPER_ADMIN_PASSWORD must be set", file=sys.stderr)
        return 1
    if len(password) < MIN_PASSWORD_LENGTH:
        print(
            f"SUPER_ADMIN_PASSWORD must be at least {MIN_PASSWORD_LENGTH} characters",
            file=sys.stderr,
        )
        return 1

    asyncio.run(seed_super_admin(email, password, name))
    return 0


if __name__ == "__main__":
    sys.exit(main())

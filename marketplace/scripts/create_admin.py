"""
One-time bootstrap script — creates an ADMIN user.

Usage:
    python -m marketplace.scripts.create_admin

Signup never hands out the admin role, so this is the only way to
create one.  Run `alembic upgrade head` first.
"""

import asyncio
import getpass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from marketplace.core.config import settings
from marketplace.core.security import hash_password
from marketplace.models.user import User, UserRole
from marketplace.schemas import NAME_PATTERN, PASSWORD_PATTERN, normalize_email


async def create_admin() -> None:
    engine = create_async_engine(settings.DATABASE_URL, echo=False)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)

    async with session_factory() as session:
        # ── Collect input ────────────────────────────────────────────
        print(f"\n🔧  {settings.APP_NAME} — Admin Setup\n")
        email = input("  Admin email: ").strip()
        name = input("  Full name:   ").strip()
        phone = input("  Phone:       ").strip()
        password = getpass.getpass("  Password:    ")
        confirm = getpass.getpass("  Confirm:     ")

        if password != confirm:
            print("\n❌  Passwords do not match.")
            await engine.dispose()
            return

        if not email or not name or not phone or not password:
            print("\n❌  All fields are required.")
            await engine.dispose()
            return

        try:
            email = normalize_email(email)
        except ValueError as exc:
            print(f"\n❌  {exc}")
            await engine.dispose()
            return

        if not NAME_PATTERN.match(name) or not PASSWORD_PATTERN.match(password):
            print("\n❌  Name must be letters and spaces; password must be 8-16 chars")
            print("   with upper, lower, digit and one of @$!%*#?&.")
            await engine.dispose()
            return

        # ── Check for existing user ──────────────────────────────────
        existing = (
            await session.execute(select(User).where(User.email == email))
        ).scalar_one_or_none()

        if existing:
            print(f"\n❌  User with email '{email}' already exists.")
            await engine.dispose()
            return

        # ── Create the admin user ────────────────────────────────────
        admin_user = User(
            name=name,
            email=email,
            password_hash=hash_password(password),
            phone_number=phone,
            role=UserRole.ADMIN,
        )
        session.add(admin_user)
        await session.commit()

        print("\n✅  Admin user created successfully!")
        print(f"    ID:    {admin_user.id}")
        print(f"    Email: {admin_user.email}")
        print("    Role:  admin")
        print("\n   You can now log in via POST /api/user/login\n")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(create_admin())

"""Create the database tables and the first admin account.

Run once against a fresh database::

    python -m scripts.init_db --email admin@example.com --password 'a-strong-password'

Idempotent: existing tables are left alone and an existing admin is reported,
not replaced.
"""

import argparse
import asyncio

from sqlalchemy import select

import frontdesk.models  # noqa: F401  (registers every table on Base.metadata)
from frontdesk.auth.passwords import hash_password
from frontdesk.database import Base, async_session_factory, engine
from frontdesk.models.user import User


async def init_db(email: str, password: str, name: str) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print("✅ Tables created")

    async with async_session_factory() as session:
        result = await session.execute(select(User).where(User.role == "admin"))
        existing = result.scalars().first()
        if existing is not None:
            print(f"⚠️  Admin user already exists: {existing.email}")
        else:
            session.add(User(email=email, hashed_password=hash_password(password), name=name, role="admin"))
            await session.commit()
            print(f"✅ Created admin user: {email}")

    await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Create tables and the first admin account.")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--name", default="Administrator")
    args = parser.parse_args()
    asyncio.run(init_db(args.email, args.password, args.name))


if __name__ == "__main__":
    main()

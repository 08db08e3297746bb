"""
Database setup script: create tables and mint owner-less seed invite codes
"""
import asyncio
import sys

from dishfinder.database import engine, Base, AsyncSessionLocal
from dishfinder.models import *  # noqa: F401,F403
from dishfinder.services.invites import mint_invite_codes


async def setup_database(seed_codes: int):
    """Create tables and seed initial invite codes"""
    print("Creating database tables...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print("Tables created")

    async with AsyncSessionLocal() as session:
        codes = await mint_invite_codes(session, None, seed_codes)
        await session.commit()

    print(f"\nDatabase setup complete! {len(codes)} seed invite codes:")
    for c in codes:
        print(f"  {c.code}")


if __name__ == "__main__":
    count = int(sys.argv[1]) if len(sys.argv) > 1 else 5
    asyncio.run(setup_database(count))

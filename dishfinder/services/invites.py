"""
Invite-code checks, one-time consumption and minting
"""
import logging
import secrets
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from dishfinder.models.user import InviteCode

logger = logging.getLogger(__name__)

CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 8


class InviteError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def generate_code() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


async def check_invite_code(db: AsyncSession, code: str) -> InviteCode:
    """Raise InviteError unless the code exists and is unused"""
    result = await db.execute(select(InviteCode).where(InviteCode.code == (code or "").strip()))
    invite = result.scalar_one_or_none()
    if not invite:
        raise InviteError("Invalid invite code.", 404)
    if invite.is_used:
        raise InviteError("This invite code has already been used.", 400)
    return invite


async def consume_invite_code(db: AsyncSession, code: str, user_id: int) -> None:
    """Flip is_used false -> true for exactly one caller. Does not commit."""
    result = await db.execute(
        update(InviteCode)
        .where(InviteCode.code == (code or "").strip(), InviteCode.is_used.is_(False))
        .values(is_used=True, used_by_user_id=user_id, used_at=datetime.now(timezone.utc))
    )
    if result.rowcount != 1:
        await check_invite_code(db, code)
        raise InviteError("This invite code has already been used.", 400)


async def mint_invite_codes(db: AsyncSession, owner_user_id: Optional[int], count: int) -> List[InviteCode]:
    """Create `count` fresh codes for a new user. Does not commit."""
    fresh: List[str] = []
    while len(fresh) < count:
        candidates = {generate_code() for _ in range(count - len(fresh))} - set(fresh)
        existing = await db.execute(select(InviteCode.code).where(InviteCode.code.in_(candidates)))
        fresh.extend(candidates - set(existing.scalars().all()))

    codes = [InviteCode(code=code, owner_user_id=owner_user_id, is_used=False) for code in fresh[:count]]

    db.add_all(codes)
    await db.flush()
    logger.info(f"Minted {len(codes)} invite codes for user {owner_user_id}")
    return codes

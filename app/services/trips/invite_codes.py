from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from app.models.trips.trip_invitation import Invitation, InvitationStatus
from typing import Optional
import secrets
import string

# No 0/O/I/l/1 so links survive being read aloud or retyped
TOKEN_ALPHABET = "".join(
    c for c in string.ascii_letters + string.digits if c not in "0OIl1"
)
TOKEN_LENGTH = 12

CODE_MIN = 100000
CODE_MAX = 999999


def generate_link_token(length: int = TOKEN_LENGTH) -> str:
    return ''.join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


def generate_six_digit_code() -> str:
    return str(CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1))


def is_well_formed_code(code: str) -> bool:
    return len(code) == 6 and code.isascii() and code.isdigit()


async def token_exists(db: AsyncSession, token: str) -> bool:
    result = await db.execute(select(Invitation.id).where(Invitation.token == token))
    return result.first() is not None


async def active_code_exists(db: AsyncSession, code: str) -> bool:
    result = await db.execute(
        select(Invitation.id).where(
            Invitation.code == code,
            Invitation.status == InvitationStatus.active,
        )
    )
    return result.first() is not None


async def generate_unique_token(db: AsyncSession, max_attempts: int) -> Optional[str]:
    """
    Pre-check candidates against storage. The unique index on token still
    decides; callers must retry on IntegrityError.
    """
    for _ in range(max_attempts):
        token = generate_link_token()
        if not await token_exists(db, token):
            return token
    return None


async def generate_unique_code(db: AsyncSession, max_attempts: int) -> Optional[str]:
    for _ in range(max_attempts):
        code = generate_six_digit_code()
        if not await active_code_exists(db, code):
            return code
    return None

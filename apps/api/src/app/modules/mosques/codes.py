"""
Verification Code Issuer

Generates, reissues and validates mosque verification codes.

- Codes are 16 upper-case hex characters (64 bits from ``secrets``).
- Reissue is a compare-and-set on the mosque row: two concurrent
  regenerations can never both win against the same old code.
- Validation is a pure read.
"""

import logging
import secrets
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logging import mask_code
from app.modules.mosques.models import Mosque
from app.modules.mosques.repository import MosqueRepository
from app.modules.shared import as_utc, utcnow
from app.modules.shared.errors import ConcurrentModificationError, MosqueNotFoundError, ServiceError

logger = logging.getLogger(__name__)

CODE_BYTES = 8
MIN_EXPIRY_DAYS = 1
MAX_EXPIRY_DAYS = 365
MAX_ISSUE_ATTEMPTS = 3


class InvalidExpiryError(ServiceError):
    def __init__(self, expiry_days: int):
        super().__init__(
            message=(
                f"expiry_days must be between {MIN_EXPIRY_DAYS} and {MAX_EXPIRY_DAYS}, "
                f"got {expiry_days}"
            ),
            error_code="INVALID_EXPIRY",
            status_code=400,
        )


@dataclass(frozen=True)
class IssuedCode:
    mosque_id: UUID
    old_code: str | None
    new_code: str
    expires_at: datetime


@dataclass(frozen=True)
class CodeValidation:
    mosque_found: bool
    valid: bool
    expired: bool


@dataclass
class IssueOutcome:
    """Result of one mosque in a batch issue."""

    mosque_id: UUID
    issued: IssuedCode | None = None
    error_code: str | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.issued is not None


def generate_code() -> str:
    return secrets.token_hex(CODE_BYTES).upper()


def normalize_code(code: str) -> str:
    return code.strip().upper()


def _check_expiry_days(expiry_days: int) -> None:
    if not MIN_EXPIRY_DAYS <= expiry_days <= MAX_EXPIRY_DAYS:
        raise InvalidExpiryError(expiry_days)


async def _code_in_use(db: AsyncSession, code: str) -> bool:
    result = await db.execute(select(Mosque.id).where(Mosque.verification_code == code))
    return result.scalar_one_or_none() is not None


async def new_unique_code(db: AsyncSession) -> str:
    """Generate a code not currently held by any mosque."""
    for _ in range(MAX_ISSUE_ATTEMPTS):
        code = generate_code()
        if not await _code_in_use(db, code):
            return code
    raise ConcurrentModificationError("Verification code space")


def expiry_from_now(expiry_days: int | None = None, now: datetime | None = None) -> datetime:
    days = expiry_days if expiry_days is not None else settings.verification_code_expiry_days
    _check_expiry_days(days)
    return (now or utcnow()) + timedelta(days=days)


async def issue(
    db: AsyncSession,
    mosque_id: UUID,
    expiry_days: int | None = None,
) -> IssuedCode:
    """
    Replace a mosque's code with a fresh one. Caller must commit.

    The previous code stops validating as soon as this transaction commits.

    Args:
        db: Database session
        mosque_id: Mosque to reissue for
        expiry_days: Validity window (defaults to the configured 30 days)

    Raises:
        MosqueNotFoundError: Mosque does not exist
        InvalidExpiryError: expiry_days outside 1..365
        ConcurrentModificationError: Lost the compare-and-set repeatedly
    """
    expires_at = expiry_from_now(expiry_days)

    for attempt in range(1, MAX_ISSUE_ATTEMPTS + 1):
        mosque = await MosqueRepository.get_by_id(db, mosque_id, fresh=True)
        if mosque is None:
            raise MosqueNotFoundError(mosque_id)

        old_code = mosque.verification_code
        new_code = await new_unique_code(db)

        swapped = await MosqueRepository.swap_verification_code(
            db,
            mosque_id,
            expected_code=old_code,
            new_code=new_code,
            expires_at=expires_at,
        )
        if swapped:
            logger.info(
                f"Issued verification code {mask_code(new_code)} for mosque {mosque_id} "
                f"(expires {expires_at.isoformat()})"
            )
            return IssuedCode(
                mosque_id=mosque_id,
                old_code=old_code,
                new_code=new_code,
                expires_at=expires_at,
            )

        logger.warning(
            f"Code swap for mosque {mosque_id} lost a race (attempt {attempt}), retrying"
        )

    raise ConcurrentModificationError(f"Mosque {mosque_id} verification code")


async def validate(db: AsyncSession, mosque_id: UUID, code: str) -> CodeValidation:
    """
    Check a submitted code against the mosque's current one. Read-only.

    The submitted code is trimmed and upper-cased first. A matching but
    expired code reports ``valid=False, expired=True``.
    """
    mosque = await MosqueRepository.get_by_id(db, mosque_id)
    if mosque is None:
        return CodeValidation(mosque_found=False, valid=False, expired=False)
    return validate_against(mosque, code)


def validate_against(mosque: Mosque, code: str, now: datetime | None = None) -> CodeValidation:
    """Validate ``code`` against an already loaded mosque."""
    if normalize_code(code) != mosque.verification_code:
        return CodeValidation(mosque_found=True, valid=False, expired=False)

    expired = (now or utcnow()) > as_utc(mosque.verification_code_expires_at)
    return CodeValidation(mosque_found=True, valid=not expired, expired=expired)


async def issue_many(
    db: AsyncSession,
    mosque_ids: list[UUID],
    expiry_days: int | None = None,
    on_issued: Callable[[AsyncSession, IssuedCode], Awaitable[None]] | None = None,
) -> list[IssueOutcome]:
    """
    Reissue codes for several mosques, each in its own transaction.

    ``on_issued`` runs before each commit so callers can add their own
    writes (audit entries) to the same transaction. A failure rolls back
    only that mosque and is reported in its outcome.
    """
    if expiry_days is not None:
        _check_expiry_days(expiry_days)

    outcomes: list[IssueOutcome] = []
    for mosque_id in dict.fromkeys(mosque_ids):
        try:
            issued = await issue(db, mosque_id, expiry_days)
            if on_issued is not None:
                await on_issued(db, issued)
            await db.commit()
            outcomes.append(IssueOutcome(mosque_id=mosque_id, issued=issued))
        except ServiceError as e:
            await db.rollback()
            logger.warning(f"Code issue failed for mosque {mosque_id}: {e.message}")
            outcomes.append(
                IssueOutcome(mosque_id=mosque_id, error_code=e.error_code, error=e.message)
            )
        except Exception as e:
            await db.rollback()
            logger.error(f"Code issue failed for mosque {mosque_id}: {e}", exc_info=True)
            outcomes.append(
                IssueOutcome(mosque_id=mosque_id, error_code="INTERNAL_ERROR", error=str(e))
            )

    return outcomes

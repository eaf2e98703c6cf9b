"""Human-readable certificate identifiers (CERT-YYYYMMDD-SEQ-RAND)."""
import logging
import random
from datetime import date, datetime, timezone
from typing import Awaitable, Callable, Optional, Union

from app.exceptions import CertificateIdExhausted

logger = logging.getLogger(__name__)

CERTIFICATE_ID_PREFIX = "CERT"
MAX_ALLOCATION_ATTEMPTS = 10

ExistsCallback = Callable[[str], Awaitable[bool]]


def generate_certificate_id(
    event_date: Optional[Union[date, datetime]] = None,
    sequence: Optional[int] = None,
    prefix: str = CERTIFICATE_ID_PREFIX,
) -> str:
    """
    Build one candidate id.

    SEQ is the explicit sequence when given, otherwise a random 1-99; both
    are zero-padded to two digits. RAND is a random 1000-9999.
    """
    day = event_date or datetime.now(timezone.utc)
    date_str = day.strftime("%Y%m%d")

    seq = sequence if sequence is not None else random.randint(1, 99)
    rand = random.randint(1000, 9999)

    return f"{prefix}-{date_str}-{seq:02d}-{rand}"


async def allocate_certificate_id(
    exists: ExistsCallback,
    event_date: Optional[Union[date, datetime]] = None,
    sequence: Optional[int] = None,
    max_attempts: int = MAX_ALLOCATION_ATTEMPTS,
    strict: bool = False,
) -> str:
    """
    Generate ids until `exists` reports one as free.

    Best effort: after max_attempts collisions the last candidate is
    returned anyway and a warning is logged. With strict=True the
    exhaustion raises CertificateIdExhausted instead.
    """
    candidate = generate_certificate_id(event_date, sequence)
    for attempt in range(1, max_attempts + 1):
        if not await exists(candidate):
            return candidate
        logger.debug(f"Certificate id collision on {candidate} (attempt {attempt}/{max_attempts})")
        if attempt < max_attempts:
            candidate = generate_certificate_id(event_date, sequence)

    if strict:
        raise CertificateIdExhausted(
            f"Failed to generate unique certificate id after {max_attempts} attempts"
        )

    logger.warning(
        f"Certificate id allocation exhausted {max_attempts} attempts; "
        f"proceeding with possibly colliding id {candidate}"
    )
    return candidate

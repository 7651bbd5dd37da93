"""Student code number allocation.

The code space is split into 90 partitions ("pillars"). A partition is
picked by two random digits, a main digit 1-9 and a sub digit 0-9, and
its base is main * 100000 + sub * 10000. Each partition hands out
base+1 .. base+9999 in strictly increasing order from its tracker row,
which is read and advanced under the database write lock.

Random selection keeps concurrent registrations from queuing on a single
counter. A full partition is skipped and a new one drawn, up to
``settings.pillar_max_attempts`` times.

    with get_core(atomic=True) as core:
        code_number = allocator.allocate(core)
"""

import logging
import secrets
from collections.abc import Callable

from ..config import settings
from ..db import Core
from ..exceptions import CapacityExhausted

logger = logging.getLogger(__name__)

MAIN_DIGITS = range(1, 10)
SUB_DIGITS = range(0, 10)


def partition_base(main_digit: int, sub_digit: int) -> int:
    """Compute the base of the partition selected by two digits."""
    if main_digit not in MAIN_DIGITS or sub_digit not in SUB_DIGITS:
        raise ValueError(f"No partition for digits ({main_digit}, {sub_digit})")
    return main_digit * 100000 + sub_digit * 10000


def random_partition_base() -> int:
    """Draw a partition base uniformly from the 90 partitions."""
    main_digit = 1 + secrets.randbelow(9)
    sub_digit = secrets.randbelow(10)
    return partition_base(main_digit, sub_digit)


def allocate(core: Core, choose_base: Callable[[], int] = random_partition_base) -> str:
    """Issue the next unused code number from a randomly chosen partition.

    The tracker row stays locked until ``core`` commits or rolls back, so
    the caller's account insert lands in the same transaction.

    Args:
        core: Core whose transaction the allocation joins
        choose_base: Partition picker, replaceable for deterministic tests

    Returns:
        The new code number as a decimal string

    Raises:
        CapacityExhausted: If every drawn partition was full
    """
    for _ in range(settings.pillar_max_attempts):
        tracker = core.pillar.acquire(choose_base())
        if tracker.is_at_limit:
            logger.debug(f"Partition {tracker.sub_pillar_base} is full, redrawing")
            continue

        tracker = core.pillar.save(tracker.issue_next())
        return str(tracker.last_issued_number)

    logger.error(
        f"No free code number after {settings.pillar_max_attempts} partition draws"
    )
    raise CapacityExhausted(
        "Unable to allocate a code number",
        {"attempts": settings.pillar_max_attempts}
    )

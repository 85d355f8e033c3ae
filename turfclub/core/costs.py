"""Per-player cost splitting for shared venue bookings."""

from __future__ import annotations

import math
import numbers

from turfclub.core.constants import COST_ROUNDING_UNIT, MIN_PLAYER_SHARE
from turfclub.errors import ValidationError


def _validate(total_cost, participant_count) -> None:
    if isinstance(total_cost, bool) or not isinstance(total_cost, numbers.Real):
        raise ValidationError("Total cost must be a number.")
    if not math.isfinite(total_cost) or total_cost < 0:
        raise ValidationError("Total cost must be a finite, non-negative amount.")
    if isinstance(participant_count, bool) or not isinstance(
        participant_count, numbers.Real
    ):
        raise ValidationError("Participant count must be a whole number.")
    if not math.isfinite(participant_count) or participant_count != int(
        participant_count
    ):
        raise ValidationError("Participant count must be a whole number.")
    if participant_count < 0:
        raise ValidationError("Participant count cannot be negative.")


def allocate(
    total_cost,
    participant_count,
    minimum: int = MIN_PLAYER_SHARE,
    unit: int = COST_ROUNDING_UNIT,
) -> int:
    """Split ``total_cost`` across ``participant_count`` players.

    The share is rounded up to the next multiple of ``unit`` and never drops
    below ``minimum``. An empty event costs nobody anything.

    Raises:
        ValidationError: If either input is negative, non-finite or not a
            number, or if the participant count is fractional.
    """
    _validate(total_cost, participant_count)
    count = int(participant_count)
    if count == 0:
        return 0

    # Integer arithmetic where possible so 1000/10 stays exactly 100.
    if isinstance(total_cost, numbers.Integral):
        units = -(-int(total_cost) // (count * unit))
    else:
        units = math.ceil(total_cost / count / unit)
    return max(units * unit, minimum)


def share_for(event: dict, participant_count: int | None = None) -> int:
    """Return the per-player share for an event document."""
    if participant_count is None:
        participant_count = event.get("participantCount", 0) or 0
    return allocate(event.get("totalAmount", 0) or 0, participant_count)

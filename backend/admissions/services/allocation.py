import math

from ..config import MERIT_WAITLIST_FACTOR
from ..schemas.admission import Allocation, MeritOutcome, RankedApplicant
from ..utils.validation import validate_integer_field, validate_number_field


def waitlist_size(total_seats: int, waitlist_factor: float) -> int:
    # Round before ceil: 30 * 0.1 is 3.0000000000000004 in floats and must stay 3.
    return int(math.ceil(round(total_seats * waitlist_factor, 9)))


def allocate(
    ranked: list[RankedApplicant],
    total_seats: int,
    waitlist_factor: float | None = None,
) -> list[Allocation]:
    """
    Label ranked applicants against a seat count.

    Ranks 1..S are selected, the next ceil(S * factor) are waitlisted and the
    rest are rejected. A pool no larger than S is selected in full.
    """
    seats = validate_integer_field(total_seats, "Total seats", min_value=1)
    factor = validate_number_field(
        MERIT_WAITLIST_FACTOR if waitlist_factor is None else waitlist_factor,
        "Waitlist factor",
        min_value=0.0,
    )
    waitlist_end = seats + waitlist_size(seats, factor)

    out: list[Allocation] = []
    for r in sorted(ranked or [], key=lambda x: x.rank):
        if r.rank <= seats:
            outcome = MeritOutcome.SELECTED
        elif r.rank <= waitlist_end:
            outcome = MeritOutcome.WAITLISTED
        else:
            outcome = MeritOutcome.REJECTED
        out.append(Allocation(**r.model_dump(), outcome=outcome))
    return out

import random
from datetime import datetime, timedelta, timezone

import pytest

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _cand(i, score, *, date=None, number=None):
    from backend.admissions.schemas.admission import RankCandidate

    return RankCandidate(
        application_id=i,
        application_number=number or f"APP-2026-{i:05d}",
        application_date=date or T0,
        score=score,
    )


def test_rank_orders_by_score_descending_with_dense_ranks():
    from backend.admissions.services.ranking import rank

    ranked = rank([_cand(1, 70), _cand(2, 90), _cand(3, 80)])
    assert [r.application_id for r in ranked] == [2, 3, 1]
    assert [r.rank for r in ranked] == [1, 2, 3]


def test_tie_breaks_on_earlier_date_then_number():
    from backend.admissions.services.ranking import rank

    ranked = rank(
        [
            _cand(1, 85, date=T0 + timedelta(hours=1), number="APP-2026-00001"),
            _cand(2, 85, date=T0, number="APP-2026-00009"),
            _cand(3, 85, date=T0, number="APP-2026-00003"),
        ]
    )
    assert [r.application_id for r in ranked] == [3, 2, 1]


def test_scores_within_epsilon_tie():
    from backend.admissions.services.ranking import rank

    ranked = rank(
        [
            _cand(1, 80.0000004, date=T0 + timedelta(minutes=5)),
            _cand(2, 80.0, date=T0),
        ]
    )
    # Treated as equal scores, so the earlier application wins.
    assert [r.application_id for r in ranked] == [2, 1]


def test_naive_and_aware_dates_compare():
    from backend.admissions.services.ranking import rank

    naive_earlier = (T0 - timedelta(days=1)).replace(tzinfo=None)
    ranked = rank([_cand(1, 50, date=T0), _cand(2, 50, date=naive_earlier)])
    assert ranked[0].application_id == 2


def test_rank_is_a_total_order_independent_of_input_order():
    from backend.admissions.services.ranking import rank

    rng = random.Random(7)
    pool = [
        _cand(i, rng.choice([60, 70, 70.0000001, 80]), date=T0 + timedelta(minutes=rng.randint(0, 3)))
        for i in range(1, 60)
    ]
    expected = [r.application_id for r in rank(pool)]
    for _ in range(5):
        shuffled = pool[:]
        rng.shuffle(shuffled)
        ranked = rank(shuffled)
        assert [r.application_id for r in ranked] == expected
        assert sorted(r.rank for r in ranked) == list(range(1, len(pool) + 1))


def test_chained_near_equal_scores_rank_the_same_in_every_input_order():
    from itertools import permutations

    from backend.admissions.services.ranking import rank

    # Each neighbour is within 1e-6 of the next, but the ends are not.
    pool = [
        _cand(1, 1.0000015, date=T0 + timedelta(hours=2)),
        _cand(2, 1.0000008, date=T0 + timedelta(hours=1)),
        _cand(3, 1.0, date=T0),
    ]
    orders = {tuple(r.application_id for r in rank(list(p))) for p in permutations(pool)}
    assert len(orders) == 1


def test_duplicate_application_numbers_are_rejected():
    from backend.admissions.services.ranking import rank
    from backend.admissions.utils.error_handlers import ValidationError

    with pytest.raises(ValidationError):
        rank([_cand(1, 80, number="APP-2026-00001"), _cand(2, 70, number="APP-2026-00001")])


def test_rank_empty():
    from backend.admissions.services.ranking import rank

    assert rank([]) == []


def test_allocate_50_seats_over_100_applicants():
    from backend.admissions.services.allocation import allocate
    from backend.admissions.services.ranking import rank

    ranked = rank([_cand(i, 100 - i * 0.5) for i in range(1, 101)])
    out = allocate(ranked, 50, 0.2)
    outcomes = [a.outcome.value for a in out]
    assert outcomes.count("selected") == 50
    assert outcomes.count("waitlisted") == 10
    assert outcomes.count("rejected") == 40
    assert all(a.outcome.value == "selected" for a in out if a.rank <= 50)
    assert all(a.outcome.value == "waitlisted" for a in out if 50 < a.rank <= 60)


def test_allocate_small_pool_selects_everyone():
    from backend.admissions.services.allocation import allocate
    from backend.admissions.services.ranking import rank

    out = allocate(rank([_cand(i, 60 + i) for i in range(1, 31)]), 50, 0.2)
    assert len(out) == 30
    assert {a.outcome.value for a in out} == {"selected"}


def test_waitlist_rounds_up_and_ignores_float_noise():
    from backend.admissions.services.allocation import waitlist_size

    assert waitlist_size(10, 0.25) == 3
    assert waitlist_size(30, 0.1) == 3
    assert waitlist_size(5, 0) == 0


def test_allocate_uses_configured_default_factor():
    from backend.admissions.services.allocation import allocate
    from backend.admissions.services.ranking import rank

    out = allocate(rank([_cand(i, 100 - i) for i in range(1, 21)]), 10)
    assert [a.outcome.value for a in out].count("waitlisted") == 2


@pytest.mark.parametrize("seats,factor", [(0, 0.2), (-3, 0.2), (5, -0.1)])
def test_allocate_rejects_bad_inputs(seats, factor):
    from backend.admissions.services.allocation import allocate
    from backend.admissions.utils.error_handlers import ValidationError

    with pytest.raises(ValidationError):
        allocate([], seats, factor)

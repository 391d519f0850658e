import pytest


def test_weighted_mean_over_all_components():
    from backend.admissions.schemas.admission import MeritWeights, SubScores
    from backend.admissions.services.merit_score import compute_score

    s = SubScores(academic=80, entry_test=60, interview=90, experience=50)
    w = MeritWeights(academic=0.5, entry_test=0.3, interview=0.2, experience=0)
    assert compute_score(s, w) == pytest.approx(0.5 * 80 + 0.3 * 60 + 0.2 * 90)


def test_scaling_all_weights_does_not_change_score():
    from backend.admissions.schemas.admission import MeritWeights, SubScores
    from backend.admissions.services.merit_score import compute_score

    s = SubScores(academic=71.5, entry_test=64)
    base = compute_score(s, MeritWeights(academic=0.6, entry_test=0.4))
    for k in (2, 10, 0.01):
        scaled = compute_score(s, MeritWeights(academic=0.6 * k, entry_test=0.4 * k))
        assert abs(scaled - base) <= 1e-6


def test_missing_component_is_not_counted_as_zero():
    from backend.admissions.schemas.admission import MeritWeights, SubScores
    from backend.admissions.services.merit_score import compute_score

    w = MeritWeights(academic=0.5, entry_test=0.3, interview=0.2)
    without_interview = compute_score(SubScores(academic=80, entry_test=70), w)
    assert without_interview == pytest.approx((0.5 * 80 + 0.3 * 70) / 0.8)
    assert without_interview > compute_score(SubScores(academic=80, entry_test=70, interview=0), w)


def test_unweighted_sub_score_is_ignored():
    from backend.admissions.schemas.admission import MeritWeights, SubScores
    from backend.admissions.services.merit_score import compute_score

    s = SubScores(academic=80, experience=10)
    assert compute_score(s, MeritWeights(academic=1)) == pytest.approx(80)


@pytest.mark.parametrize(
    "weights",
    [
        {},
        {"academic": 0},
        {"academic": -1},
        {"academic": 1, "interview": -0.1},
    ],
)
def test_invalid_weights_raise_validation_error(weights):
    from backend.admissions.schemas.admission import MeritWeights, SubScores
    from backend.admissions.services.merit_score import compute_score
    from backend.admissions.utils.error_handlers import ValidationError

    with pytest.raises(ValidationError):
        compute_score(SubScores(academic=80), MeritWeights(**weights))


def test_missing_academic_sub_score_raises():
    from backend.admissions.schemas.admission import MeritWeights, SubScores
    from backend.admissions.services.merit_score import compute_score
    from backend.admissions.utils.error_handlers import ValidationError

    with pytest.raises(ValidationError) as exc:
        compute_score(SubScores(entry_test=90), MeritWeights(academic=1, entry_test=1))
    assert exc.value.status_code == 400


def test_sub_scores_outside_range_are_rejected_by_model():
    from pydantic import ValidationError as PydanticValidationError

    from backend.admissions.schemas.admission import SubScores

    with pytest.raises(PydanticValidationError):
        SubScores(academic=120)


def test_result_stays_within_bounds():
    from backend.admissions.schemas.admission import MeritWeights, SubScores
    from backend.admissions.services.merit_score import compute_score

    assert compute_score(SubScores(academic=100, entry_test=100), MeritWeights(academic=3, entry_test=1)) == 100.0
    assert compute_score(SubScores(academic=0), MeritWeights(academic=1)) == 0.0

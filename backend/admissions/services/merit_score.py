from ..schemas.admission import MeritWeights, SubScores
from ..utils.error_handlers import ValidationError
from ..utils.validation import validate_number_field

# Recognized sub-score components, in display order.
COMPONENTS = ("academic", "entry_test", "interview", "experience")


def validate_weights(weights: MeritWeights) -> dict[str, float]:
    """
    Returns {component: weight} for the weights that were supplied.
    Academic must be present and > 0; every other weight must be >= 0.
    """
    if weights is None:
        raise ValidationError("Merit weights are required")

    academic = validate_number_field(weights.academic, "Academic weight", min_value=0.0)
    if academic <= 0.0:
        raise ValidationError("Academic weight must be greater than 0")

    out: dict[str, float] = {"academic": academic}
    for name in COMPONENTS[1:]:
        w = validate_number_field(getattr(weights, name), f"{name} weight", min_value=0.0, required=False)
        if w is not None:
            out[name] = w
    return out


def compute_score(sub_scores: SubScores, weights: MeritWeights) -> float:
    """
    Weighted mean of the supplied sub-scores on a 0-100 scale.

    Only components present in both `sub_scores` and `weights` participate, and
    the result is divided by the sum of their weights. An applicant without,
    say, an interview score is scored against the remaining weights instead of
    receiving zero for the missing component.
    """
    w = validate_weights(weights)
    if sub_scores is None or sub_scores.academic is None:
        raise ValidationError("Academic sub-score is required")

    total = 0.0
    weight_sum = 0.0
    for name, weight in w.items():
        value = getattr(sub_scores, name)
        if value is None:
            continue
        total += weight * float(value)
        weight_sum += weight

    # weight_sum > 0: academic is always present with a positive weight.
    score = total / weight_sum
    if score < 0.0:
        return 0.0
    if score > 100.0:
        return 100.0
    return float(score)

"""
Eligibility evaluation.

Pure function of (academic history, criteria, test scores, dates) -> verdict.
No database access; the admission service persists the result and drives the
lifecycle transition.

Verdict rules:
  - no criteria, or inactive criteria  -> pending (never eligible without a rule set)
  - any defined criterion violated      -> not_eligible
  - a defined criterion not checkable   -> pending
  - otherwise                           -> eligible
"""

from datetime import date
from typing import Any

from ..schemas.admission import (
    AcademicHistoryEntry,
    CriteriaRules,
    EligibilityResult,
    EligibilityVerdict,
    TestScores,
)


def _age_on(date_of_birth: date, on: date) -> int:
    years = on.year - date_of_birth.year
    if (on.month, on.day) < (date_of_birth.month, date_of_birth.day):
        years -= 1
    return years


def best_marks(academic_history: list[AcademicHistoryEntry]) -> float | None:
    marks = [float(e.marks) for e in academic_history or [] if e.marks is not None]
    return max(marks) if marks else None


def best_cgpa(academic_history: list[AcademicHistoryEntry]) -> float | None:
    cgpas = [float(e.cgpa) for e in academic_history or [] if e.cgpa is not None]
    return max(cgpas) if cgpas else None


def _as_rules(criteria: Any) -> CriteriaRules | None:
    if criteria is None:
        return None
    if isinstance(criteria, CriteriaRules):
        return criteria
    return CriteriaRules.model_validate(criteria, from_attributes=True)


def evaluate(
    academic_history: list[AcademicHistoryEntry] | None,
    criteria: CriteriaRules | None,
    test_scores: TestScores | None = None,
    *,
    date_of_birth: date | None = None,
    admission_date: date | None = None,
) -> EligibilityResult:
    """
    Evaluate an applicant's academic history against a program's criteria.

    `score` is the best marks percentage across the history (0 when there is no
    history). It is reported whatever the verdict and is later used as the
    academic sub-score. Test scores are accepted for interface symmetry; no
    criterion currently constrains them.
    """
    history = list(academic_history or [])
    top_marks = best_marks(history)
    score = float(top_marks) if top_marks is not None else 0.0

    rules = _as_rules(criteria)
    if rules is None or not rules.is_active:
        return EligibilityResult(
            verdict=EligibilityVerdict.PENDING,
            score=score,
            unverified=["criteria"],
        )

    reasons: list[str] = []
    unverified: list[str] = []

    if rules.minimum_marks is not None:
        if top_marks is None:
            unverified.append("minimum_marks")
        elif top_marks < rules.minimum_marks:
            reasons.append(f"Marks {top_marks:g}% is below minimum required {rules.minimum_marks:g}%")

    if rules.minimum_cgpa is not None:
        top_cgpa = best_cgpa(history)
        if top_cgpa is None:
            unverified.append("minimum_cgpa")
        elif top_cgpa < rules.minimum_cgpa:
            reasons.append(f"CGPA {top_cgpa:g} is below minimum required {rules.minimum_cgpa:g}")

    required = [s.strip() for s in rules.required_subjects or [] if s and s.strip()]
    if required:
        if not history:
            unverified.append("required_subjects")
        else:
            labels: set[str] = set()
            for entry in history:
                labels |= entry.labels()
            missing = [s for s in required if s.casefold() not in labels]
            if missing:
                reasons.append(f"Missing required subjects: {', '.join(missing)}")

    if rules.age_limit is not None:
        if date_of_birth is None or admission_date is None:
            unverified.append("age_limit")
        else:
            age = _age_on(date_of_birth, admission_date)
            if age > rules.age_limit:
                reasons.append(f"Age {age} exceeds maximum limit of {rules.age_limit} years")

    if reasons:
        verdict = EligibilityVerdict.NOT_ELIGIBLE
    elif unverified:
        verdict = EligibilityVerdict.PENDING
    else:
        verdict = EligibilityVerdict.ELIGIBLE

    return EligibilityResult(verdict=verdict, score=score, reasons=reasons, unverified=unverified)

"""
Interview rubric aggregation.

Admins score a consultant per criterion, grouped by category, on a 1-5 scale
(0 or missing = not scored). The lifecycle accepts exactly one numeric score,
so the rubric is reduced first:

    good = number of scored criteria with score >= 3
    good == 0                           -> 2  (reject path)
    good >= 3 or good >= total / 2      -> 4  (approve path)
    otherwise                           -> 3  (approve boundary)

Usage:
    from grc_portal.services.interview_rubric import aggregate_rubric

    score = aggregate_rubric({"Cultural Fit": {"Attitude and mindset": {"score": 4}}})
"""

from __future__ import annotations

from dataclasses import dataclass

from grc_portal.core.exceptions import ValidationError

GOOD_SCORE = 3

RUBRIC_CATEGORIES = {
    "Job Fit / Technical Competence": [
        "Relevant experience",
        "Technical skills or certifications",
        "Problem-solving ability",
        "Knowledge of tools/technologies",
        "Ability to learn quickly",
    ],
    "Behavioral & Soft Skills": [
        "Communication skills",
        "Teamwork and collaboration",
        "Conflict resolution",
        "Work ethic and integrity",
        "Time management and organization",
        "Emotional intelligence (EQ)",
    ],
    "Cultural Fit": [
        "Alignment with company values",
        "Attitude and mindset",
        "Professionalism and demeanor",
        "Work style compatibility",
    ],
    "Problem Solving & Critical Thinking": [
        "Analytical thinking",
        "Decision-making under pressure",
        "Creative approaches to challenges",
    ],
    "Motivation & Career Goals": [
        "Why they want the job",
        "Career aspiration alignment",
        "Long-term potential",
    ],
    "Past Performance": [
        "Achievements in past roles",
        "Promotion or growth history",
        "References and endorsements",
        "Employment gap analysis",
    ],
    "Leadership & Initiative": [
        "Leadership style",
        "Examples of initiative",
        "Project/people management experience",
        "Stakeholder management",
    ],
    "Adaptability": [
        "Experience in dynamic environments",
        "Handling change/uncertainty",
        "Response to changing scenarios",
    ],
    "Domain Knowledge": [
        "Industry-specific knowledge",
        "Regulatory awareness",
    ],
    "Red Flags": [
        "Evasive or vague answers",
        "Blaming others for failures",
        "Overstated achievements",
        "Poor listening or attitude",
    ],
}


@dataclass(frozen=True)
class RubricSummary:
    score: int
    good: int
    low: int
    total: int

    def as_notes(self) -> str:
        return (
            f"Rubric: {self.good} of {self.total} scored criteria at {GOOD_SCORE}+ "
            f"({self.low} below); aggregate score {self.score}"
        )


def _criterion_score(category: str, criterion: str, item) -> float:
    raw = item.get("score") if isinstance(item, dict) else item
    if raw is None:
        return 0
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ValidationError(
            "Rubric scores must be numbers",
            details={"category": category, "criterion": criterion, "score": raw},
        )
    if raw < 0 or raw > 5:
        raise ValidationError(
            "Rubric scores must be between 0 and 5",
            details={"category": category, "criterion": criterion, "score": raw},
        )
    return raw


def collect_scores(rubric: dict) -> list[float]:
    """Flatten ``{category: {criterion: {score, comment}}}`` into scored values.

    Categories and criteria must come from ``RUBRIC_CATEGORIES``; unscored
    criteria (0 or missing) are dropped.
    """
    if not isinstance(rubric, dict):
        raise ValidationError("rubric must be an object keyed by category")
    scores = []
    for category, criteria in rubric.items():
        known = RUBRIC_CATEGORIES.get(category)
        if known is None:
            raise ValidationError(
                "Unknown rubric category",
                details={"category": category, "validOptions": list(RUBRIC_CATEGORIES)},
            )
        if not isinstance(criteria, dict):
            raise ValidationError(
                "Each rubric category must map criteria to scores",
                details={"category": category},
            )
        for criterion, item in criteria.items():
            if criterion not in known:
                raise ValidationError(
                    "Unknown rubric criterion",
                    details={"category": category, "criterion": criterion, "validOptions": known},
                )
            value = _criterion_score(category, criterion, item)
            if value > 0:
                scores.append(value)
    return scores


def summarize_rubric(rubric: dict) -> RubricSummary:
    scores = collect_scores(rubric)
    if not scores:
        raise ValidationError("At least one rubric criterion must be scored")

    good = sum(1 for s in scores if s >= GOOD_SCORE)
    total = len(scores)
    if good == 0:
        score = 2
    elif good >= 3 or good >= total / 2:
        score = 4
    else:
        score = 3
    return RubricSummary(score=score, good=good, low=total - good, total=total)


def aggregate_rubric(rubric: dict) -> int:
    return summarize_rubric(rubric).score

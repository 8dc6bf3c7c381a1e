"""
Committee Scoring Functions

Weighted rubric used by committee members to score Stage 2 applications.
Each criterion is rated on the same small integer scale and contributes
``(rating / MAX_RATING) * weight`` to the total.  Weights sum to
``MAX_TOTAL`` so a perfect score is 100.

RAG banding colours a total red, amber or green for the committee and
admin dashboards.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from pbportal import config


# ============================================================================
# RATING SCALE
# ============================================================================

MIN_RATING = 0
MAX_RATING = 3
MAX_TOTAL = 100

RAG_RED_BELOW = 50


@dataclass(frozen=True)
class ScoringCriterion:
    id: str
    name: str
    guidance: str  # one-line summary for tooltips
    weight: int
    details: str = ""  # full guidance shown in the scoring panel


# ============================================================================
# RUBRIC
# ============================================================================

SCORING_CRITERIA: List[ScoringCriterion] = [
    ScoringCriterion(
        id="community_need",
        name="Community Need",
        guidance="Evidence that the project responds to a need identified by local people.",
        weight=20,
        details=(
            "Look for evidence that local people asked for this project: "
            "consultation, surveys, waiting lists or letters of support. "
            "3 = strong local evidence; 2 = some evidence; "
            "1 = need asserted but not shown; 0 = no link to local need."
        ),
    ),
    ScoringCriterion(
        id="outcomes",
        name="Positive Outcomes",
        guidance="Clear, realistic outcomes that will make a difference in the area.",
        weight=20,
        details=(
            "Outcomes should say who benefits, how many people, and what will "
            "change for them. 3 = specific and measurable; 2 = clear but "
            "hard to measure; 1 = vague; 0 = no outcomes described."
        ),
    ),
    ScoringCriterion(
        id="marmot",
        name="Marmot Principles",
        guidance="How well the project addresses the selected Marmot principles.",
        weight=15,
        details=(
            "Judge the explanation given for each selected Marmot principle, "
            "not the number ticked. 3 = every selection is explained and "
            "convincing; 2 = most are; 1 = selections are not explained; "
            "0 = none selected."
        ),
    ),
    ScoringCriterion(
        id="wfg",
        name="Well-being of Future Generations",
        guidance="Contribution to the selected Well-being of Future Generations goals.",
        weight=15,
        details=(
            "Judge how the project contributes to the Well-being of Future "
            "Generations goals the applicant selected. 3 = a clear, lasting "
            "contribution; 2 = a plausible contribution; 1 = a weak link; "
            "0 = no link."
        ),
    ),
    ScoringCriterion(
        id="deliverability",
        name="Deliverability",
        guidance="Capacity, timeline and risk management give confidence of delivery.",
        weight=15,
        details=(
            "Consider the group's experience, the realism of the timeline and "
            "whether risks have mitigations. 3 = high confidence; "
            "2 = some gaps; 1 = significant doubts; 0 = unlikely to be delivered."
        ),
    ),
    ScoringCriterion(
        id="value_for_money",
        name="Value for Money",
        guidance="Budget is proportionate, itemised and justified.",
        weight=15,
        details=(
            "Check the budget breakdown against the activities. Costs should be "
            "itemised, reasonable and explained, with other funding declared. "
            "3 = excellent value; 2 = acceptable; 1 = poorly justified; "
            "0 = no usable budget."
        ),
    ),
]

CRITERIA_BY_ID: Dict[str, ScoringCriterion] = {c.id: c for c in SCORING_CRITERIA}


# ============================================================================
# SCORING FUNCTIONS
# ============================================================================


def calculate_total(
    ratings: Mapping[str, int],
    criteria: Optional[Mapping[str, ScoringCriterion]] = None,
) -> float:
    """
    Calculate the weighted total for a set of criterion ratings.

    Criterion ids missing from the rubric contribute nothing.

    Args:
        ratings: Criterion id -> rating on the ``MIN_RATING..MAX_RATING`` scale
        criteria: Rubric to score against (defaults to ``SCORING_CRITERIA``)

    Returns:
        Float between 0 and ``MAX_TOTAL``
    """
    rubric = CRITERIA_BY_ID if criteria is None else criteria
    total = 0.0
    for criterion_id, rating in ratings.items():
        criterion = rubric.get(criterion_id)
        if criterion is None:
            continue
        total += (rating / MAX_RATING) * criterion.weight
    return total


def rag_status(total: float, threshold: Optional[int] = None) -> str:
    """
    Band a score total as ``"red"``, ``"amber"`` or ``"green"``.

    Totals are rounded first, matching what the dashboards display.
    Below ``RAG_RED_BELOW`` is red; below the pass threshold is amber.
    """
    pass_mark = config.SCORE_PASS_THRESHOLD if threshold is None else threshold
    rounded = display_round(total)
    if rounded < RAG_RED_BELOW:
        return "red"
    if rounded < pass_mark:
        return "amber"
    return "green"


def display_round(total: float) -> int:
    """Round half up, so 64.5 displays as 65."""
    return int(math.floor(total + 0.5))

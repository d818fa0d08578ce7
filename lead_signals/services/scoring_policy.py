"""Score weighting policies and the hot/warm/lukewarm/cold partition.

A policy maps ``ScoreFactors`` to sub-scores and an overall score.  The
weights are business policy and may be swapped freely; whatever the
policy, ``overall_score`` must stay in ``[0, 100]`` and be
non-decreasing in each sub-score.
"""

from abc import ABC, abstractmethod

from lead_signals.core import constants
from lead_signals.core.exceptions import InvariantViolationError
from lead_signals.schemas.common import ScoreBucket
from lead_signals.schemas.score import (
    EngagementFactors,
    FitFactors,
    ScoreFactors,
    SubScores,
    UrgencyFactors,
)


def bucket_for(score: float) -> ScoreBucket:
    """Map an overall score onto its bucket.

    Raises ``InvariantViolationError`` for scores outside ``[0, 100]``.
    """
    if not constants.MIN_SCORE <= score <= constants.MAX_SCORE:
        raise InvariantViolationError(f"Score {score!r} is outside [0, 100]")
    for bucket, lower_bound in constants.BUCKET_LOWER_BOUNDS.items():
        if score >= lower_bound:
            return ScoreBucket(bucket)
    raise InvariantViolationError(f"Score {score!r} matched no bucket")


def validate_sub_scores(scores: SubScores) -> SubScores:
    for name, value in scores.model_dump().items():
        if not constants.MIN_SCORE <= value <= constants.MAX_SCORE:
            raise InvariantViolationError(f"{name}={value!r} is outside [0, 100]")
    return scores


class ScoringPolicy(ABC):
    """Strategy interface for turning factors into scores."""

    name: str = "abstract"

    @abstractmethod
    def engagement_score(self, factors: EngagementFactors) -> float: ...

    @abstractmethod
    def urgency_score(self, factors: UrgencyFactors) -> float: ...

    @abstractmethod
    def fit_score(self, factors: FitFactors) -> float: ...

    @abstractmethod
    def overall_score(self, engagement: float, urgency: float, fit: float) -> float: ...

    def score(self, factors: ScoreFactors) -> SubScores:
        engagement = self.engagement_score(factors.engagement)
        urgency = self.urgency_score(factors.urgency)
        fit = self.fit_score(factors.fit)
        return SubScores(
            engagement_score=engagement,
            urgency_score=urgency,
            fit_score=fit,
            overall_score=self.overall_score(engagement, urgency, fit),
        )


class DefaultScoringPolicy(ScoringPolicy):
    """The production weighting: engagement 40%, urgency 40%, fit 20%.

    A lead strong on all three axes (each above 70) gets a +10 bonus.
    """

    name = "default-v1"

    def engagement_score(self, factors: EngagementFactors) -> float:
        score = min(factors.demo_views * 20, 40)
        score += min(factors.email_opens * 10, 30)
        if factors.replies > 0:
            score += 30
        decay = min(factors.days_since_interaction * 5, 20)
        return float(min(max(0, score - decay), 100))

    def urgency_score(self, factors: UrgencyFactors) -> float:
        status = factors.status_type
        days = factors.days_in_status
        score = 0
        if status == "demo_sent" and days >= 3:
            score += 30
        if status == "contact_attempted" and days >= 7:
            score += 40
        if status == "demo_engaged" and days >= 2:
            score += 25
        if factors.follow_ups_ignored >= 2:
            score += 20
        if status == "ready_to_buy":
            score += 50
        return float(min(score, 100))

    def fit_score(self, factors: FitFactors) -> float:
        score = 0
        if factors.industry_match:
            score += 30
        if factors.has_website:
            score += 20
        if factors.has_reviews:
            score += 20
        rating = factors.review_rating
        if rating is not None and rating >= 4:
            score += 30
        elif rating is not None and rating >= 3:
            score += 15
        return float(min(score, 100))

    def overall_score(self, engagement: float, urgency: float, fit: float) -> float:
        overall = engagement * 0.4 + urgency * 0.4 + fit * 0.2
        if engagement > 70 and urgency > 70 and fit > 70:
            overall += 10
        return float(min(round(overall), 100))

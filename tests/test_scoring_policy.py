import pytest

from lead_signals.core.exceptions import InvariantViolationError
from lead_signals.schemas.common import ScoreBucket
from lead_signals.schemas.score import (
    EngagementFactors,
    FitFactors,
    ScoreFactors,
    SubScores,
    UrgencyFactors,
)
from lead_signals.services.scoring_policy import (
    DefaultScoringPolicy,
    ScoringPolicy,
    bucket_for,
    validate_sub_scores,
)


@pytest.fixture
def policy() -> DefaultScoringPolicy:
    return DefaultScoringPolicy()


class TestBucketFor:
    """Lower bounds are inclusive, upper bounds exclusive."""

    @pytest.mark.parametrize(
        "score, expected",
        [
            (100, ScoreBucket.hot),
            (80, ScoreBucket.hot),
            (79.999, ScoreBucket.warm),
            (60, ScoreBucket.warm),
            (59.999, ScoreBucket.lukewarm),
            (40, ScoreBucket.lukewarm),
            (39.999, ScoreBucket.cold),
            (0, ScoreBucket.cold),
        ],
    )
    def test_boundaries(self, score, expected):
        assert bucket_for(score) == expected

    @pytest.mark.parametrize("score", [-0.5, 100.01, 250])
    def test_out_of_range_raises(self, score):
        with pytest.raises(InvariantViolationError):
            bucket_for(score)

    def test_validate_sub_scores_rejects_out_of_range(self):
        with pytest.raises(InvariantViolationError, match="urgency_score"):
            validate_sub_scores(
                SubScores(
                    engagement_score=10,
                    urgency_score=120,
                    fit_score=0,
                    overall_score=50,
                )
            )


class TestEngagementScore:
    def test_caps_per_signal(self, policy):
        factors = EngagementFactors(demo_views=5, email_opens=9, replies=0)
        # views capped at 40, opens capped at 30
        assert policy.engagement_score(factors) == 70

    def test_reply_bonus(self, policy):
        factors = EngagementFactors(demo_views=1, email_opens=1, replies=1)
        assert policy.engagement_score(factors) == 60

    def test_decay_is_capped_and_floored(self, policy):
        assert (
            policy.engagement_score(
                EngagementFactors(demo_views=2, days_since_interaction=30)
            )
            == 20
        )
        assert policy.engagement_score(EngagementFactors(days_since_interaction=3)) == 0

    @pytest.mark.parametrize("email_opens", [0, 2, 5])
    @pytest.mark.parametrize("replies", [0, 1])
    @pytest.mark.parametrize("days_since_interaction", [0, 3, 10])
    def test_more_demo_views_never_lower_engagement(
        self, policy, email_opens, replies, days_since_interaction
    ):
        scores = [
            policy.engagement_score(
                EngagementFactors(
                    demo_views=views,
                    email_opens=email_opens,
                    replies=replies,
                    days_since_interaction=days_since_interaction,
                )
            )
            for views in range(8)
        ]

        assert scores == sorted(scores)


class TestUrgencyScore:
    def test_ready_to_buy(self, policy):
        factors = UrgencyFactors(days_in_status=0, status_type="ready_to_buy")
        assert policy.urgency_score(factors) == 50

    def test_demo_sent_needs_three_days(self, policy):
        assert (
            policy.urgency_score(UrgencyFactors(days_in_status=2, status_type="demo_sent"))
            == 0
        )
        assert (
            policy.urgency_score(UrgencyFactors(days_in_status=3, status_type="demo_sent"))
            == 30
        )

    def test_ignored_follow_ups(self, policy):
        factors = UrgencyFactors(
            days_in_status=8, follow_ups_ignored=2, status_type="contact_attempted"
        )
        assert policy.urgency_score(factors) == 60


class TestFitScore:
    def test_full_fit(self, policy):
        factors = FitFactors(
            industry_match=True, has_website=True, has_reviews=True, review_rating=4.6
        )
        assert policy.fit_score(factors) == 100

    def test_mid_rating(self, policy):
        factors = FitFactors(has_reviews=True, review_rating=3.2)
        assert policy.fit_score(factors) == 35

    def test_no_rating(self, policy):
        assert policy.fit_score(FitFactors()) == 0


class TestOverallScore:
    def test_weighted_average(self, policy):
        # 0.4*50 + 0.4*50 + 0.2*100 = 60
        assert policy.overall_score(50, 50, 100) == 60

    def test_all_round_bonus(self, policy):
        # 0.4*80 + 0.4*80 + 0.2*80 = 80, +10 bonus
        assert policy.overall_score(80, 80, 80) == 90

    def test_capped_at_100(self, policy):
        assert policy.overall_score(100, 100, 100) == 100

    def test_monotonic_in_each_sub_score(self, policy):
        grid = [0, 25, 50, 71, 100]
        for e in grid:
            for u in grid:
                for f in grid:
                    base = policy.overall_score(e, u, f)
                    assert policy.overall_score(min(e + 10, 100), u, f) >= base
                    assert policy.overall_score(e, min(u + 10, 100), f) >= base
                    assert policy.overall_score(e, u, min(f + 10, 100)) >= base

    def test_deterministic(self, policy):
        factors = ScoreFactors(
            engagement=EngagementFactors(demo_views=1, email_opens=2),
            urgency=UrgencyFactors(days_in_status=4, status_type="demo_sent"),
            fit=FitFactors(industry_match=True, review_rating=4.0),
        )
        assert policy.score(factors) == policy.score(factors)


class TestSwappablePolicy:
    """The engine only depends on the ``ScoringPolicy`` interface."""

    def test_custom_policy(self):
        class FlatPolicy(ScoringPolicy):
            name = "flat"

            def engagement_score(self, factors):
                return 10.0

            def urgency_score(self, factors):
                return 20.0

            def fit_score(self, factors):
                return 30.0

            def overall_score(self, engagement, urgency, fit):
                return max(engagement, urgency, fit)

        scores = FlatPolicy().score(
            ScoreFactors(
                engagement=EngagementFactors(),
                urgency=UrgencyFactors(status_type="new_lead"),
                fit=FitFactors(),
            )
        )
        assert scores.overall_score == 30.0
        assert scores.urgency_score == 20.0

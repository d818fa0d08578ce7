from datetime import timedelta

from lead_signals.core import constants
from lead_signals.schemas.common import EventKind, PipelineStatus


class TestPipelineStatuses:
    """Terminal and active statuses partition the pipeline."""

    def test_terminal_statuses(self):
        assert "lost_closed" in constants.TERMINAL_STATUSES
        assert "customer_won" in constants.TERMINAL_STATUSES

    def test_legacy_terminal_aliases(self):
        assert {"closed_lost", "closed_won"} <= constants.TERMINAL_STATUSES

    def test_active_statuses_exclude_terminal(self):
        assert not constants.ACTIVE_STATUSES & constants.TERMINAL_STATUSES
        assert constants.ACTIVE_STATUSES == {
            "new_lead",
            "contact_attempted",
            "demo_created",
            "demo_sent",
            "demo_engaged",
            "ready_to_buy",
        }

    def test_every_enum_member_is_a_pipeline_status(self):
        for status in PipelineStatus:
            assert status.value in constants.PIPELINE_STATUSES


class TestWindows:
    def test_rule_windows(self):
        assert constants.DEMO_NOT_VIEWED_WINDOW == timedelta(hours=48)
        assert constants.DEMO_NO_REPLY_WINDOW == timedelta(hours=24)
        assert constants.LEAD_INACTIVE_WINDOW == timedelta(days=7)
        assert constants.RECENT_ACTIVITY_WINDOW == timedelta(hours=48)

    def test_presence_threshold_is_two_minutes(self):
        assert constants.ACTIVE_THRESHOLD == timedelta(seconds=120)


class TestInteractionLabels:
    """Every last-seen source kind has a label; activities do not."""

    def test_labels(self):
        assert constants.INTERACTION_LABELS == {
            EventKind.demo_view: "Viewed demo",
            EventKind.email_open: "Opened email",
            EventKind.email_click: "Clicked email link",
            EventKind.note: "Note added",
            EventKind.call: "Call logged",
        }

    def test_email_event_mapping(self):
        assert constants.EMAIL_EVENT_KINDS["open"] == EventKind.email_open
        assert constants.EMAIL_EVENT_KINDS["click"] == EventKind.email_click
        assert constants.EMAIL_EVENT_KINDS["reply"] == EventKind.email_reply
        assert "bounce" not in constants.EMAIL_EVENT_KINDS


class TestBuckets:
    def test_bucket_bounds_are_descending(self):
        bounds = list(constants.BUCKET_LOWER_BOUNDS.values())
        assert bounds == sorted(bounds, reverse=True)
        assert bounds[-1] == constants.MIN_SCORE

"""Tests for read-time visibility and the time-remaining labels."""
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from golden_glimpses.models import Capsule
from golden_glimpses.services.visibility import (
    READY_LABEL,
    evaluate,
    format_time_remaining,
    is_content_visible,
    unlock_progress,
)

NOW = datetime(2026, 5, 1, 12, 0, 0)


def _capsule(unsealing_date, is_public=False, created_at=None):
    return Capsule(
        owner_id="owner",
        title="Trip",
        unsealing_date=unsealing_date,
        is_public=is_public,
        created_at=created_at or NOW - timedelta(days=1),
    )


class TestEvaluate:
    def test_public_is_always_visible(self):
        for offset in (timedelta(days=-3), timedelta(0), timedelta(days=3650)):
            result = evaluate(_capsule(NOW + offset, is_public=True), NOW)
            assert result.is_content_visible is True
            assert result.time_remaining is None

    def test_boundary_is_visible(self):
        assert is_content_visible(_capsule(NOW), NOW) is True

    def test_one_millisecond_before_is_hidden(self):
        capsule = _capsule(NOW)
        result = evaluate(capsule, NOW - timedelta(milliseconds=1))
        assert result.is_content_visible is False
        assert result.time_remaining == timedelta(milliseconds=1)

    def test_time_remaining_until_unsealing(self):
        result = evaluate(_capsule(NOW + timedelta(days=1)), NOW)
        assert result.is_content_visible is False
        assert result.time_remaining == timedelta(days=1)
        assert result.time_remaining_label == "1 day remaining"

    def test_past_date_is_visible(self):
        result = evaluate(_capsule(NOW - timedelta(minutes=1)), NOW)
        assert result.is_content_visible is True
        assert result.time_remaining is None
        assert result.time_remaining_label is None

    def test_aware_now_is_compared_in_utc(self):
        from datetime import timezone
        aware = (NOW - timedelta(hours=1)).replace(tzinfo=timezone.utc)
        assert evaluate(_capsule(NOW), aware).time_remaining == timedelta(hours=1)

    @pytest.mark.parametrize("bad", [None, "not-a-date", "NaN", 12345])
    def test_unreadable_date_fails_open(self, bad):
        capsule = SimpleNamespace(id="c1", is_public=False, unsealing_date=bad)
        result = evaluate(capsule, NOW)
        assert result.is_content_visible is True
        assert result.time_remaining is None


class TestFormatTimeRemaining:
    @pytest.mark.parametrize("duration, label", [
        (timedelta(days=800), "2 years remaining"),
        (timedelta(days=366), "1 year remaining"),
        (timedelta(days=365), "12 months remaining"),
        (timedelta(days=31), "1 month remaining"),
        (timedelta(days=30), "30 days remaining"),
        (timedelta(days=1, hours=23), "1 day remaining"),
        (timedelta(hours=23, minutes=59), "23 hours remaining"),
        (timedelta(hours=1), "1 hour remaining"),
        (timedelta(minutes=20), "0 hours remaining"),
        (timedelta(0), READY_LABEL),
        (timedelta(days=-2), READY_LABEL),
    ])
    def test_buckets(self, duration, label):
        assert format_time_remaining(duration) == label

    def test_none_is_ready(self):
        assert format_time_remaining(None) == READY_LABEL

    def test_monotonic_buckets(self):
        rank = {"Ready": 0, "hour": 1, "day": 2, "month": 3, "year": 4}

        def bucket(label):
            if label == READY_LABEL:
                return 0
            unit = label.split()[1].rstrip("s")
            return rank[unit]

        durations = [timedelta(minutes=m) for m in range(0, 3 * 365 * 24 * 60, 7919)]
        ranks = [bucket(format_time_remaining(d)) for d in durations]
        assert ranks == sorted(ranks)


class TestUnlockProgress:
    def test_halfway(self):
        capsule = _capsule(NOW + timedelta(days=5), created_at=NOW - timedelta(days=5))
        assert unlock_progress(capsule, NOW) == 50

    def test_complete_once_unsealed(self):
        assert unlock_progress(_capsule(NOW - timedelta(seconds=1)), NOW) == 100

    def test_just_created(self):
        capsule = _capsule(NOW + timedelta(days=5), created_at=NOW)
        assert unlock_progress(capsule, NOW) == 0

"""Tests for release view analytics."""

from datetime import timedelta

import pytest

from presswire.core.errors import ValidationError
from presswire.models.records import CompanyInfo, ManagementRecord
from presswire.services.analytics import AnalyticsService


@pytest.fixture
def analytics(store, clock):
    return AnalyticsService(store, clock=clock)


class TestTrackView:
    def test_counts_views_sessions_and_referrers(self, analytics):
        analytics.track_view("acme", "s1", "https://news.ycombinator.com")
        analytics.track_view("acme", "s1", "direct")
        record = analytics.track_view("acme", "s2", "")
        assert record.views == 3
        assert record.unique_visitors == 2
        assert record.referrers == {"https://news.ycombinator.com": 1, "direct": 2}

    def test_views_bucketed_by_day(self, analytics, clock):
        analytics.track_view("acme", "s1")
        clock.advance(days=1)
        record = analytics.track_view("acme", "s1")
        assert list(record.daily_views.values()) == [1, 1]

    @pytest.mark.parametrize("slug", ["", "x" * 201])
    def test_rejects_bad_slug(self, analytics, slug):
        with pytest.raises(ValidationError):
            analytics.track_view(slug, "s1")


class TestSummary:
    def test_summary_for_release(self, analytics, clock):
        release = ManagementRecord(
            management_token="t",
            slug="acme",
            created_at=clock.now,
            headline="h",
            summary="s",
            content="c",
            contact="",
            company=CompanyInfo(name="Acme"),
        )
        for i in range(7):
            analytics.track_view("acme", f"s{i}", "google" if i % 2 else "direct")
        clock.advance(days=2, hours=1)

        summary = analytics.summary(release)
        assert summary["total_views"] == 7
        assert summary["unique_visitors"] == 7
        assert summary["published_days"] == 2
        assert summary["average_daily_views"] == 4
        assert summary["top_referrers"][0] == {"url": "direct", "count": 4}

    def test_summary_without_views(self, analytics, clock):
        release = ManagementRecord(
            management_token="t",
            slug="quiet",
            created_at=clock.now - timedelta(hours=3),
            headline="h",
            summary="s",
            content="c",
            contact="",
            company=CompanyInfo(name="Quiet"),
        )
        summary = analytics.summary(release)
        assert summary["total_views"] == 0
        assert summary["average_daily_views"] == 0

"""Page-view analytics for published releases.

Published pages post a view (slug, session id, referrer) on load. Counters
feed the get-analytics management action.
"""

from dataclasses import replace
from datetime import datetime

from presswire.core.errors import ValidationError
from presswire.core.store import Clock, KeyValueStore, utc_now
from presswire.models.records import ManagementRecord, ReleaseAnalytics

ANALYTICS_KEY_PREFIX = "analytics:"

_TOP_REFERRERS = 5
_MAX_SLUG_LENGTH = 200


def analytics_key(slug: str) -> str:
    return f"{ANALYTICS_KEY_PREFIX}{slug}"


class AnalyticsService:
    """Records and summarizes release views."""

    def __init__(self, store: KeyValueStore, *, clock: Clock = utc_now) -> None:
        self._store = store
        self._clock = clock

    def track_view(self, slug: str, session_id: str, referrer: str = "direct") -> ReleaseAnalytics:
        """Count one page view.

        Raises:
            ValidationError: Missing or oversized slug.
        """
        if not slug or len(slug) > _MAX_SLUG_LENGTH:
            raise ValidationError("Invalid slug")
        key = analytics_key(slug)
        # Create-if-absent; losing the race just means someone else created it
        self._store.compare_and_swap(key, None, ReleaseAnalytics(slug=slug))

        def apply(current: ReleaseAnalytics) -> ReleaseAnalytics:
            now = self._clock()
            day = now.date().isoformat()
            referrer_name = referrer or "direct"
            return replace(
                current,
                views=current.views + 1,
                sessions=current.sessions | {session_id} if session_id else current.sessions,
                referrers={
                    **current.referrers,
                    referrer_name: current.referrers.get(referrer_name, 0) + 1,
                },
                daily_views={**current.daily_views, day: current.daily_views.get(day, 0) + 1},
                last_updated=now,
            )

        return self._store.update(key, apply)

    def summary(self, record: ManagementRecord) -> dict:
        """Engagement metrics for one release."""
        analytics: ReleaseAnalytics = self._store.get(analytics_key(record.slug)) or (
            ReleaseAnalytics(slug=record.slug)
        )
        now: datetime = self._clock()
        published_days = (now - record.created_at).days
        average_daily = round(analytics.views / published_days) if published_days > 0 else 0
        top = sorted(analytics.referrers.items(), key=lambda item: item[1], reverse=True)
        return {
            "total_views": analytics.views,
            "unique_visitors": analytics.unique_visitors,
            "average_daily_views": average_daily,
            "published_days": published_days,
            "top_referrers": [
                {"url": url, "count": count} for url, count in top[:_TOP_REFERRERS]
            ],
            "views_by_day": dict(analytics.daily_views),
            "last_updated": analytics.last_updated or now,
        }

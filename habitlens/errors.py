"""Exceptions raised at the analytics service seam."""


class AnalyticsError(Exception):
    """Base class for analytics failures."""


class SourceUnavailable(AnalyticsError):
    """Habits, history or the account start date could not be fetched."""


class MetricUnavailable(AnalyticsError):
    """The external metric provider returned nothing usable."""

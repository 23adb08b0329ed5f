"""Per-token state aggregation."""

from pumpwatch.services.aggregator.metrics_aggregator import MetricsAggregator, utc_now

__all__ = ["MetricsAggregator", "utc_now"]

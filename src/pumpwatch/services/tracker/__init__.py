"""Opportunity tracking."""

from pumpwatch.services.tracker.opportunity_tracker import OpportunityTracker

__all__ = ["OpportunityTracker"]

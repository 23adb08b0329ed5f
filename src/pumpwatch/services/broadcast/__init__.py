"""Broadcast fan-out to dashboard viewers."""

from pumpwatch.services.broadcast.hub import BroadcastHub, BroadcastSink, Viewer

__all__ = ["BroadcastHub", "BroadcastSink", "Viewer"]

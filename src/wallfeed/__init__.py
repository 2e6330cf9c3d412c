"""Wallhaven to Matrix/Mastodon/ntfy relay."""

from wallfeed.domain.models import CycleSummary, DiscoveredItem, PipelineResult
from wallfeed.relay import run_relay, run_relay_async

__all__ = [
    "CycleSummary",
    "DiscoveredItem",
    "PipelineResult",
    "run_relay",
    "run_relay_async",
]

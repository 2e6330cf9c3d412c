"""Domain models, errors and deterministic rules for wallfeed."""

from wallfeed.domain.errors import (
    ConfigError,
    DescriptionError,
    NetworkError,
    NotFoundError,
    SinkError,
    StorageError,
    WallfeedError,
)
from wallfeed.domain.models import CycleSummary, DiscoveredItem, ItemArtifacts, PipelineResult, SinkOutcome
from wallfeed.domain.rules import build_caption, build_notification_message, build_status, human_file_size

__all__ = [
    "build_caption",
    "build_notification_message",
    "build_status",
    "ConfigError",
    "CycleSummary",
    "DescriptionError",
    "DiscoveredItem",
    "human_file_size",
    "ItemArtifacts",
    "NetworkError",
    "NotFoundError",
    "PipelineResult",
    "SinkError",
    "SinkOutcome",
    "StorageError",
    "WallfeedError",
]

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class DiscoveredItem:
    # Identity is the catalog id; metadata may drift between fetches.
    id: str
    url: str = field(compare=False)
    uploader: str = field(compare=False)
    resolution: str = field(compare=False)
    file_size: int = field(compare=False)
    file_type: str = field(compare=False)
    path: str = field(compare=False)
    thumb_url: str = field(compare=False)
    tags: tuple[str, ...] = field(default_factory=tuple, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "uploader": self.uploader,
            "resolution": self.resolution,
            "file_size": self.file_size,
            "file_type": self.file_type,
            "path": self.path,
            "thumb_url": self.thumb_url,
            "tags": list(self.tags),
        }


@dataclass(frozen=True)
class ItemArtifacts:
    thumb_path: Path
    asset_path: Path


@dataclass(frozen=True)
class SinkOutcome:
    sink: str
    ok: bool
    error: str | None = None


@dataclass(frozen=True)
class PipelineResult:
    item_id: str
    stage: str
    described: bool
    sink_outcomes: tuple[SinkOutcome, ...]
    committed: bool
    error: str | None = None

    @property
    def failed_sinks(self) -> tuple[str, ...]:
        return tuple(o.sink for o in self.sink_outcomes if not o.ok)

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "stage": self.stage,
            "described": self.described,
            "sink_outcomes": [
                {"sink": o.sink, "ok": o.ok, "error": o.error} for o in self.sink_outcomes
            ],
            "committed": self.committed,
            "error": self.error,
        }


@dataclass(frozen=True)
class CycleSummary:
    cycle: int
    batch_total: int
    committed_total: int
    aborted_total: int
    cancelled_total: int
    duration_ms: int

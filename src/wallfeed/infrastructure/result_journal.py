import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path

from wallfeed.domain.models import PipelineResult


class ResultJsonlJournal:
    """Append-only record of what happened to each item in one relay run.

    One line per PipelineResult, stamped with the run id, a per-run sequence
    number and the UTC time it was recorded.
    """

    def __init__(self, output_dir: str | Path, run_id: str) -> None:
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.run_id = run_id
        self.file_path = self.output_dir / f"item_results_{run_id}.jsonl"
        self.written = 0
        self._lock = asyncio.Lock()
        self._handle = self.file_path.open("a", encoding="utf-8")
        self._closed = False

    async def write_result(self, result: PipelineResult) -> None:
        async with self._lock:
            if self._closed:
                raise RuntimeError(f"Result journal for run {self.run_id} is closed.")
            record = {
                "run_id": self.run_id,
                "sequence": self.written + 1,
                "recorded_at": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
                **result.to_dict(),
            }
            self._handle.write(json.dumps(record, ensure_ascii=False) + "\n")
            self._handle.flush()
            self.written += 1

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._handle.close()

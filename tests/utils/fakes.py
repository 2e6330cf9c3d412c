import asyncio
from contextlib import asynccontextmanager
from pathlib import Path

from wallfeed.domain.errors import DescriptionError, NetworkError, SinkError, StorageError
from wallfeed.domain.models import ItemArtifacts


class FakeLedger:
    def __init__(self, sent=(), fail_on_mark=(), fail_on_lookup=()):
        self.sent = set(sent)
        self.fail_on_mark = set(fail_on_mark)
        self.fail_on_lookup = set(fail_on_lookup)
        self.lookups = []

    def is_sent(self, item_id):
        self.lookups.append(item_id)
        if item_id in self.fail_on_lookup:
            raise StorageError("database is locked")
        return item_id in self.sent

    def mark_sent(self, item_id):
        if item_id in self.fail_on_mark:
            raise StorageError("disk I/O error")
        self.sent.add(item_id)


class FakeCatalog:
    def __init__(self, ranges, items, failing_details=(), detail_errors=None):
        self.ranges = ranges
        self.items = items
        self.failing_details = set(failing_details)
        self.detail_errors = detail_errors or {}
        self.detail_calls = []

    async def search(self, _session, range_param):
        result = self.ranges[range_param]
        if isinstance(result, Exception):
            raise result
        return list(result)

    async def fetch_item(self, _session, item_id):
        self.detail_calls.append(item_id)
        if item_id in self.failing_details:
            raise NetworkError(f"detail:{item_id}: HTTP 500")
        if item_id in self.detail_errors:
            raise self.detail_errors[item_id]
        return self.items[item_id]


class FakeArtifacts:
    """Writes real scratch files and removes them when the scope closes."""

    def __init__(self, scratch_dir, failing_ids=()):
        self.scratch_dir = Path(scratch_dir)
        self.scratch_dir.mkdir(parents=True, exist_ok=True)
        self.failing_ids = set(failing_ids)
        self.acquired = []

    @asynccontextmanager
    async def acquire(self, _session, item):
        self.acquired.append(item.id)
        if item.id in self.failing_ids:
            raise NetworkError(f"Download failed for {item.path}: HTTP 404")
        thumb = self.scratch_dir / f"thumb-{item.id}.jpg"
        asset = self.scratch_dir / f"image-{item.id}.jpg"
        thumb.write_bytes(b"thumb")
        asset.write_bytes(b"image")
        try:
            yield ItemArtifacts(thumb_path=thumb, asset_path=asset)
        finally:
            thumb.unlink(missing_ok=True)
            asset.unlink(missing_ok=True)


class FakeDescriber:
    def __init__(self, text="A generated description", fail=False, error=None):
        self.text = text
        self.fail = fail
        self.error = error
        self.calls = []

    async def describe(self, _session, image_path):
        self.calls.append(image_path)
        if self.error is not None:
            raise self.error
        if self.fail:
            raise DescriptionError("OpenAI API error: HTTP 500")
        return self.text


class FakeSink:
    def __init__(self, name, fail=False, delay=0.0, block=False, error=None, events=None):
        self.name = name
        self.fail = fail
        self.delay = delay
        self.block = block
        self.error = error
        self.events = events if events is not None else []
        self.calls = []
        self.cancelled = False

    async def publish(self, _session, item, description, asset_path):
        self.calls.append((item.id, description, Path(asset_path)))
        self.events.append(f"start:{self.name}:{item.id}")
        try:
            if self.block:
                await asyncio.Event().wait()
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error is not None:
            raise self.error
        if self.fail:
            raise SinkError(f"{self.name}: HTTP 500")
        self.events.append(f"end:{self.name}:{item.id}")


class FakeJournal:
    def __init__(self, fail=False):
        self.fail = fail
        self.results = []

    async def write_result(self, result):
        if self.fail:
            raise OSError("disk full")
        self.results.append(result)

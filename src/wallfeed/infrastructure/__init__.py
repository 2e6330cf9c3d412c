"""Infrastructure adapters: catalog client, ledger, downloads, describer, journal."""

from wallfeed.infrastructure.asset_downloader import AssetDownloader
from wallfeed.infrastructure.ledger_sqlite import SQLiteLedger
from wallfeed.infrastructure.openai_describer import OpenAIDescriber
from wallfeed.infrastructure.result_journal import ResultJsonlJournal
from wallfeed.infrastructure.wallhaven_client import WallhavenClient

__all__ = ["AssetDownloader", "OpenAIDescriber", "ResultJsonlJournal", "SQLiteLedger", "WallhavenClient"]

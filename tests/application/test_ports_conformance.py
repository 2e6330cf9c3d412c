import unittest

from tests.utils.tempdir import managed_temp_dir
from wallfeed.application.ports import (
    ArtifactSourcePort,
    CatalogPort,
    DescriberPort,
    LedgerPort,
    PublishSink,
    ResultJournalPort,
)
from wallfeed.config.settings import MastodonConfig, MatrixConfig, NtfyConfig, OpenAIConfig
from wallfeed.infrastructure import (
    AssetDownloader,
    OpenAIDescriber,
    ResultJsonlJournal,
    SQLiteLedger,
    WallhavenClient,
)
from wallfeed.infrastructure.sinks.mastodon_sink import MastodonSink
from wallfeed.infrastructure.sinks.matrix_sink import MatrixSink
from wallfeed.infrastructure.sinks.ntfy_sink import NtfySink


class PortConformanceTests(unittest.TestCase):
    def test_adapters_implement_ports(self):
        with managed_temp_dir("ports") as tmp_path:
            ledger = SQLiteLedger(tmp_path / "sent_images.db")
            journal = ResultJsonlJournal(tmp_path / "results", run_id="ports")
            try:
                self.assertIsInstance(WallhavenClient(), CatalogPort)
                self.assertIsInstance(ledger, LedgerPort)
                self.assertIsInstance(AssetDownloader(tmp_path / "scratch"), ArtifactSourcePort)
                self.assertIsInstance(OpenAIDescriber(OpenAIConfig()), DescriberPort)
                self.assertIsInstance(journal, ResultJournalPort)
                for sink in (MatrixSink(MatrixConfig()), MastodonSink(MastodonConfig()), NtfySink(NtfyConfig())):
                    self.assertIsInstance(sink, PublishSink)
            finally:
                journal.close()
                ledger.close()


if __name__ == "__main__":
    unittest.main()

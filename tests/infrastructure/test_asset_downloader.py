import unittest

from tests.utils.http import FakeContent, FakeResponse, FakeSession
from tests.utils.items import make_item
from tests.utils.tempdir import managed_temp_dir
from wallfeed.domain.errors import NetworkError
from wallfeed.infrastructure.asset_downloader import AssetDownloader


class AssetDownloaderTests(unittest.IsolatedAsyncioTestCase):
    async def test_acquire_downloads_both_files_and_removes_them_on_exit(self):
        with managed_temp_dir("downloader_ok") as tmp_path:
            downloader = AssetDownloader(tmp_path / "scratch", user_agent="unit-test")
            session = FakeSession([FakeResponse(body=b"thumb-bytes"), FakeResponse(body=b"image-bytes" * 10)])
            item = make_item("abc123")

            async with downloader.acquire(session, item) as artifacts:
                self.assertEqual(artifacts.thumb_path.read_bytes(), b"thumb-bytes")
                self.assertEqual(artifacts.asset_path.read_bytes(), b"image-bytes" * 10)
                self.assertNotEqual(artifacts.thumb_path, artifacts.asset_path)
                paths = (artifacts.thumb_path, artifacts.asset_path)

            for path in paths:
                self.assertFalse(path.exists())
            self.assertEqual([c[1] for c in session.calls], [item.thumb_url, item.path])
            self.assertEqual(session.calls[0][2]["headers"]["User-Agent"], "unit-test")

    async def test_acquire_removes_files_when_body_raises(self):
        with managed_temp_dir("downloader_body_error") as tmp_path:
            scratch = tmp_path / "scratch"
            downloader = AssetDownloader(scratch)
            session = FakeSession([FakeResponse(body=b"t"), FakeResponse(body=b"i")])

            with self.assertRaises(RuntimeError):
                async with downloader.acquire(session, make_item("abc123")):
                    raise RuntimeError("sink crashed")

            self.assertEqual(list(scratch.iterdir()), [])

    async def test_failed_image_download_raises_and_cleans_thumbnail(self):
        with managed_temp_dir("downloader_404") as tmp_path:
            scratch = tmp_path / "scratch"
            downloader = AssetDownloader(scratch)
            session = FakeSession([FakeResponse(body=b"thumb"), FakeResponse(status=404)])

            with self.assertRaises(NetworkError):
                async with downloader.acquire(session, make_item("abc123")):
                    self.fail("body must not run when a download fails")

            self.assertEqual(list(scratch.iterdir()), [])

    async def test_interrupted_stream_removes_partial_file(self):
        with managed_temp_dir("downloader_partial") as tmp_path:
            downloader = AssetDownloader(tmp_path)
            response = FakeResponse(body=b"x" * (200 * 1024))
            response.content = FakeContent(b"x" * (200 * 1024), fail_after=1)
            target = tmp_path / "partial.jpg"

            with self.assertRaises(NetworkError):
                await downloader.download(FakeSession([response]), "https://unit.invalid/x.jpg", target)

            self.assertFalse(target.exists())


if __name__ == "__main__":
    unittest.main()

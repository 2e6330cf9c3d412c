from pathlib import PurePosixPath
from urllib.parse import urlparse
from uuid import uuid4

from pathvalidate import sanitize_filename as lib_sanitize

from wallfeed.domain.models import DiscoveredItem

MIN_CAPTION_DESCRIPTION_CHARS = 50

KB = 1 << 10
MB = 1 << 20
GB = 1 << 30


def human_file_size(size: int) -> str:
    if size >= GB:
        return f"{size / GB:.2f} GB"
    if size >= MB:
        return f"{size / MB:.2f} MB"
    if size >= KB:
        return f"{size / KB:.2f} KB"
    return f"{size} bytes"


def compact_tags(item: DiscoveredItem) -> list[str]:
    """Tag names with whitespace removed, usable as hashtags and ntfy tags."""
    return [name.replace(" ", "") for name in item.tags if name.strip()]


def build_caption(item: DiscoveredItem, description: str) -> str:
    base = (
        f"Link: {item.url}\n"
        f"Uploader: {item.uploader}\n"
        f"Resolution: {item.resolution}\n"
        f"Type: {item.file_type}\n"
        f"Size: {human_file_size(item.file_size)}\n"
        f"Tags: {', '.join(item.tags)}"
    )
    desc = (description or "").strip()
    if len(desc) >= MIN_CAPTION_DESCRIPTION_CHARS:
        return f"{base}\nDescription: {desc}"
    return base


def build_status(item: DiscoveredItem, description: str) -> str:
    hashtags = " ".join(f"#{tag}" for tag in compact_tags(item))
    return (
        f"Link: {item.url}\n"
        f"Uploader: {item.uploader}\n"
        f"Resolution: {item.resolution}\n"
        f"Type: {item.file_type}\n"
        f"Size: {item.file_size / MB:.2f} MB\n"
        f"Description: {description}\n"
        f"\n"
        f"{hashtags}"
    )


def build_notification_message(description: str) -> str:
    return f"Description: {description}"


def url_suffix(url: str, default: str = ".jpg") -> str:
    suffix = PurePosixPath(urlparse(url).path).suffix.lower()
    return suffix or default


def make_scratch_name(prefix: str, item_id: str, url: str) -> str:
    safe_id = lib_sanitize(item_id, replacement_text="_") or "item"
    return f"{prefix}-{safe_id}-{uuid4().hex[:12]}{url_suffix(url)}"

"""URL and tag helpers shared by the API and the paste-to-add flow."""
import re
import time
import uuid
from typing import Any, Dict, Optional
from urllib.parse import urlsplit, urlunsplit


IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp", ".ico", ".bmp")

_TAG_RE = re.compile(r"^[a-zA-Z0-9\-_äöüÄÖÜßéèêàáâóòôúùûéèëïöü]+$")
_CLIPBOARD_LINK_RE = re.compile(r"^(https?://[^\s]+)")


def normalize_url(url: str) -> str:
    """Trim a URL and drop a bare root path ("https://a.com/" -> "https://a.com").

    Args:
        url: Raw URL as typed or pasted

    Returns:
        Normalized URL, or the trimmed input if it does not parse as a URL
    """
    normalized = url.strip()
    try:
        parts = urlsplit(normalized)
    except ValueError:
        return normalized

    if not parts.scheme or not parts.netloc:
        return normalized

    path = "" if parts.path == "/" else parts.path
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment))


def is_valid_url(url: Optional[str]) -> bool:
    """Check that a URL has both a scheme and a host."""
    if not url or not isinstance(url, str):
        return False
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return False
    return bool(parts.scheme and parts.netloc) and " " not in parts.netloc


def is_valid_image_url(url: Optional[str]) -> bool:
    """Check a favicon URL. An empty value counts as valid (no favicon)."""
    if not url or not url.strip():
        return True
    if not is_valid_url(url):
        return False
    return url.lower().endswith(IMAGE_EXTENSIONS)


def is_valid_tag(tag: Any) -> bool:
    if not isinstance(tag, str):
        return False
    return bool(_TAG_RE.match(tag.strip()))


def extract_domain_name(url: str) -> str:
    """Derive a display title from a URL's hostname.

    "https://www.gemini.google.com/app" becomes "Gemini Google".

    Args:
        url: URL to derive the title from

    Returns:
        Capitalized hostname parts without "www." and the top-level domain,
        or "New Bookmark" if the URL has no hostname
    """
    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        hostname = None

    if not hostname:
        return "New Bookmark"

    if hostname.startswith("www."):
        hostname = hostname[4:]

    parts = hostname.split(".")
    if len(parts) > 1:
        parts.pop()

    return " ".join(part[:1].upper() + part[1:] for part in parts)


def detect_clipboard_link(text: Optional[str], auto_detect: bool = True) -> Optional[Dict[str, Any]]:
    """Turn pasted text into a draft bookmark if it looks like a link.

    Args:
        text: Clipboard text
        auto_detect: Value of the ``autoDetectClipboardLinks`` setting

    Returns:
        Draft bookmark dict ready for the edit dialog, or None if the setting
        is off or the text is not an http(s) link
    """
    if not auto_detect or not text:
        return None

    if not _CLIPBOARD_LINK_RE.match(text):
        return None

    url = normalize_url(text)
    now = int(time.time() * 1000)

    return {
        "id": str(uuid.uuid4()),
        "title": extract_domain_name(url),
        "url": url,
        "tags": [],
        "createdAt": now,
        "updatedAt": now,
    }

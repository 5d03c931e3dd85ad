"""
Image reference resolution for report photos.

Photos are uploaded to a file host by the spreadsheet script and stored as
share links. Share links do not render inline, so they are rewritten to an
image proxy that serves sized renditions of the same file id.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from typing import Optional

IMAGE_PROXY_BASE = "https://lh3.googleusercontent.com/d"
THUMBNAIL_SIZE = "s400"
FULL_SIZE = "s1000"

# /file/d/<id>/view  or  open?id=<id>
_ID_PATTERNS = (
    re.compile(r"/d/([a-zA-Z0-9_-]+)"),
    re.compile(r"[?&]id=([a-zA-Z0-9_-]+)"),
)

PLACEHOLDER_IMAGE = (
    "data:image/svg+xml;utf8,"
    '<svg xmlns="http://www.w3.org/2000/svg" width="64" height="64" viewBox="0 0 24 24" '
    'fill="none" stroke="%2394a3b8" stroke-width="2" stroke-linecap="round" '
    'stroke-linejoin="round"><rect x="3" y="3" width="18" height="18" rx="2" ry="2"></rect>'
    '<circle cx="8.5" cy="8.5" r="1.5"></circle><polyline points="21 15 16 10 5 21"></polyline></svg>'
)


@dataclass(frozen=True)
class ImageLinks:
    thumbnail: str
    full: str


def extract_file_id(url: str) -> str:
    """File id from a share link, or "" when no known shape matches."""
    for pattern in _ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return ""


def resolve_image(url: str) -> ImageLinks:
    """
    Thumbnail and zoom URLs for a stored image link.

    Links without a recognizable file id are returned as-is for both, so the
    browser links to them directly.
    """
    if not url:
        return ImageLinks(thumbnail="", full="")
    file_id = extract_file_id(url)
    if not file_id:
        return ImageLinks(thumbnail=url, full=url)
    return ImageLinks(
        thumbnail=f"{IMAGE_PROXY_BASE}/{file_id}={THUMBNAIL_SIZE}",
        full=f"{IMAGE_PROXY_BASE}/{file_id}={FULL_SIZE}",
    )


def has_hosted_image(url: str) -> bool:
    """False for empty values and the local placeholders of pending rows."""
    return bool(url) and url.startswith("http")


def img_tag(
    src: str,
    alt: str = "Kerosakan",
    width: Optional[int] = 64,
    height: Optional[int] = None,
    style: str = "",
) -> str:
    """
    <img> markup that falls back to the placeholder graphic once.

    onerror clears itself before swapping the source, so a broken
    placeholder can never loop. Inline handlers only run where the markup
    is served as a document (components.html), not inside st.markdown.
    """
    size = ""
    if width is not None:
        size += f'width="{width}" '
    if height is not None:
        size += f'height="{height}" '
    if style:
        size += f'style="{html.escape(style, quote=True)}" '
    return (
        f'<img src="{html.escape(src, quote=True)}" alt="{html.escape(alt, quote=True)}" '
        f'{size}referrerpolicy="no-referrer" '
        f"onerror=\"this.onerror=null;this.src='{html.escape(PLACEHOLDER_IMAGE, quote=True)}';\"/>"
    )


# ---------------------------------------------------------------------------
# Iframe documents
# ---------------------------------------------------------------------------

THUMBNAIL_FRAME_HEIGHT = 72
ZOOM_FRAME_HEIGHT = 520

_FRAME_STYLE = (
    "<style>html,body{margin:0;padding:0;background:transparent;}"
    "img{border-radius:8px;border:1px solid #e2e8f0;object-fit:cover;}</style>"
)


def thumbnail_document(url: str) -> str:
    """Linked thumbnail page; the link opens the stored image link."""
    links = resolve_image(url)
    return (
        f'{_FRAME_STYLE}<a href="{html.escape(url, quote=True)}" target="_blank" '
        f'rel="noopener noreferrer">{img_tag(links.thumbnail, width=64, height=64)}</a>'
    )


def zoom_document(url: str) -> str:
    """Full-size rendition page, with the same one-shot placeholder fallback."""
    links = resolve_image(url)
    return _FRAME_STYLE + img_tag(
        links.full,
        width=None,
        style=f"display:block;max-width:100%;max-height:{ZOOM_FRAME_HEIGHT - 20}px;object-fit:contain;",
    )

from __future__ import annotations

import logging
import re
from typing import Optional

from dcgallery.models import GalleryDescriptor, GalleryVariant

logger = logging.getLogger(__name__)

GALLERY_HOST = "gall.dcinside.com"

# Most specific first; the first pattern that yields an id wins.
GALLERY_ID_PATTERNS = (
    re.compile(r"gall\.dcinside\.com/mini/board/(?:lists|view)/?\?(?:[^#]*&)?id=([^&#]+)"),
    re.compile(r"gall\.dcinside\.com/mini/(?!board(?:/|$))([^/?#]+)"),
    re.compile(r"gall\.dcinside\.com/mgallery/board/(?:lists|view)/?\?(?:[^#]*&)?id=([^&#]+)"),
    re.compile(r"gall\.dcinside\.com/mgallery/(?!board(?:/|$))([^/?#]+)"),
    re.compile(r"gall\.dcinside\.com/board/(?:lists|view)/?\?(?:[^#]*&)?id=([^&#]+)"),
    re.compile(r"gall\.dcinside\.com/([^/?#]+)$"),
)

# Checked in order: mgallery, then mini, then the generic board.
VARIANT_PATTERNS: tuple[tuple[GalleryVariant, tuple[re.Pattern[str], ...]], ...] = (
    (GalleryVariant.MGALLERY, (GALLERY_ID_PATTERNS[2], GALLERY_ID_PATTERNS[3])),
    (GalleryVariant.MINI, (GALLERY_ID_PATTERNS[0], GALLERY_ID_PATTERNS[1])),
    (GalleryVariant.BOARD, (GALLERY_ID_PATTERNS[4], GALLERY_ID_PATTERNS[5])),
)

PAGE_URL_TEMPLATES = {
    GalleryVariant.MGALLERY: "https://gall.dcinside.com/mgallery/board/lists/?id={gallery_id}&page={page}",
    GalleryVariant.MINI: "https://gall.dcinside.com/mini/board/lists/?id={gallery_id}&page={page}",
    GalleryVariant.BOARD: "https://gall.dcinside.com/board/lists/?id={gallery_id}&page={page}",
}


def extract_gallery_id(url: Optional[str]) -> Optional[str]:
    if not url or not isinstance(url, str):
        return None
    for pattern in GALLERY_ID_PATTERNS:
        m = pattern.search(url)
        if m and m.group(1):
            return m.group(1)
    return None


def classify_gallery_url(url: Optional[str]) -> GalleryVariant:
    if not url or not isinstance(url, str):
        return GalleryVariant.UNKNOWN
    for variant, patterns in VARIANT_PATTERNS:
        if any(p.search(url) for p in patterns):
            return variant
    return GalleryVariant.UNKNOWN


def resolve_gallery_url(url: Optional[str]) -> GalleryDescriptor:
    """
    Parse a gallery URL. Never raises: callers must check `valid`
    before crawling.
    """
    gallery_id = extract_gallery_id(url)
    variant = classify_gallery_url(url)
    valid = bool(url) and GALLERY_HOST in url and gallery_id is not None
    if not valid:
        logger.debug("Unrecognized gallery URL: %r", url)
    return GalleryDescriptor(
        gallery_id=gallery_id,
        variant=variant,
        source_url=url or "",
        valid=valid,
    )


def build_page_url(descriptor: GalleryDescriptor, page: int) -> str:
    # Unknown variants use the mini gallery layout.
    template = PAGE_URL_TEMPLATES.get(descriptor.variant, PAGE_URL_TEMPLATES[GalleryVariant.MINI])
    return template.format(gallery_id=descriptor.gallery_id, page=page)

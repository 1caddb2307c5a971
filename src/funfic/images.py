from __future__ import annotations

from functools import partial
from typing import Callable, Literal

__all__ = [
    "ImageKind",
    "ImageUrlResolver",
    "PIXIV_ARTWORK_URL",
    "default_image_url",
    "make_image_resolver",
    "normalize_base_path",
    "pixiv_artwork_url",
]

ImageKind = Literal["uploaded", "pixiv"]
ImageUrlResolver = Callable[[ImageKind, str, str | None], str]

PIXIV_ARTWORK_URL = "https://www.pixiv.net/artworks/{illust_id}"
UPLOADED_IMAGES_ROUTE = "/api/uploaded-images"
PIXIV_IMAGES_ROUTE = "/api/pixiv-images"


def normalize_base_path(base_path: str) -> str:
    base = (base_path or "").strip()
    if not base or base == "/":
        return ""
    return "/" + base.strip("/")


def default_image_url(
    kind: ImageKind,
    image_id: str,
    page: str | None = None,
    *,
    base_path: str = "",
) -> str:
    """
    Map an image reference to the local image endpoints.

    Pixiv illustrations without an explicit page resolve to page ``0``.
    """
    base = normalize_base_path(base_path)
    if kind == "uploaded":
        return f"{base}{UPLOADED_IMAGES_ROUTE}/{image_id}"
    if kind == "pixiv":
        return f"{base}{PIXIV_IMAGES_ROUTE}/{image_id}/{page or '0'}"
    raise ValueError(f"Unknown image kind: {kind!r}")


def make_image_resolver(base_path: str = "") -> ImageUrlResolver:
    return partial(default_image_url, base_path=base_path)


def pixiv_artwork_url(illust_id: str, page: str | None = None) -> str:
    url = PIXIV_ARTWORK_URL.format(illust_id=illust_id)
    if page:
        url += f"#{page}"
    return url

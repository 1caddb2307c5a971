from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Union

from .images import ImageUrlResolver, default_image_url, pixiv_artwork_url
from .markup import (
    ChapterTitleToken,
    ExternalLinkToken,
    JumpToken,
    NewPageToken,
    PixivImageToken,
    RubyToken,
    TextToken,
    Token,
    UploadedImageToken,
    fallback_title,
    tokenize,
)

__all__ = [
    "PlainText",
    "LineBreak",
    "JumpLink",
    "ExternalLink",
    "RubyText",
    "InlineSpan",
    "ChapterHeading",
    "PageBreak",
    "UploadedImage",
    "PixivIllustration",
    "Paragraph",
    "EmptyParagraph",
    "ContentNode",
    "build_nodes",
    "render_markup",
    "title_from_nodes",
    "nodes_to_payload",
]


# ---------- inline spans ----------


@dataclass(frozen=True, slots=True)
class PlainText:
    text: str


@dataclass(frozen=True, slots=True)
class LineBreak:
    pass


@dataclass(frozen=True, slots=True)
class JumpLink:
    target_slug: str
    page_number: str


@dataclass(frozen=True, slots=True)
class ExternalLink:
    title: str
    url: str


@dataclass(frozen=True, slots=True)
class RubyText:
    base: str
    reading: str


InlineSpan = Union[PlainText, LineBreak, JumpLink, ExternalLink, RubyText]


# ---------- blocks ----------


@dataclass(frozen=True, slots=True)
class ChapterHeading:
    title: str
    key: str = ""


@dataclass(frozen=True, slots=True)
class PageBreak:
    """Marks the start of page ``page`` (the first page has no marker)."""

    page: int = 2
    key: str = ""


@dataclass(frozen=True, slots=True)
class UploadedImage:
    image_id: str
    src: str = ""
    key: str = ""


@dataclass(frozen=True, slots=True)
class PixivIllustration:
    illust_id: str
    # None when the markup gave no page; the image URL still uses page 0.
    page: str | None = None
    src: str = ""
    artwork_url: str = ""
    key: str = ""


@dataclass(frozen=True, slots=True)
class Paragraph:
    spans: tuple[InlineSpan, ...]
    key: str = ""


@dataclass(frozen=True, slots=True)
class EmptyParagraph:
    key: str = ""


ContentNode = Union[
    ChapterHeading,
    PageBreak,
    UploadedImage,
    PixivIllustration,
    Paragraph,
    EmptyParagraph,
]


def _is_content(span: InlineSpan) -> bool:
    if isinstance(span, PlainText):
        return bool(span.text.strip())
    return not isinstance(span, LineBreak)


def build_nodes(
    tokens: Iterable[Token],
    *,
    slug: str,
    image_url: ImageUrlResolver = default_image_url,
) -> list[ContentNode]:
    """
    Fold a token stream into block nodes.

    Inline tokens and text accumulate into the current paragraph; block tokens
    close it before they are emitted. A paragraph whose spans are all blank
    text or line breaks becomes an ``EmptyParagraph``.
    """
    nodes: list[ContentNode] = []
    spans: list[InlineSpan] = []
    page = 1

    def flush() -> None:
        if not spans:
            return
        key = f"para-{len(nodes)}"
        if any(_is_content(span) for span in spans):
            nodes.append(Paragraph(tuple(spans), key=key))
        else:
            nodes.append(EmptyParagraph(key=key))
        spans.clear()

    for index, token in enumerate(tokens):
        if isinstance(token, TextToken):
            for segment_index, segment in enumerate(token.raw.split("\n\n")):
                if segment_index > 0:
                    flush()
                for line_index, line in enumerate(segment.split("\n")):
                    if line_index > 0:
                        spans.append(LineBreak())
                    spans.append(PlainText(line))
        elif isinstance(token, JumpToken):
            spans.append(JumpLink(target_slug=slug, page_number=token.page_number))
        elif isinstance(token, ExternalLinkToken):
            spans.append(ExternalLink(title=token.title, url=token.url))
        elif isinstance(token, RubyToken):
            spans.append(RubyText(base=token.base, reading=token.reading))
        elif isinstance(token, NewPageToken):
            flush()
            page += 1
            nodes.append(PageBreak(page=page, key=f"newpage-{index}"))
        elif isinstance(token, ChapterTitleToken):
            flush()
            nodes.append(ChapterHeading(title=token.title, key=f"chapter-{index}"))
        elif isinstance(token, UploadedImageToken):
            flush()
            nodes.append(
                UploadedImage(
                    image_id=token.image_id,
                    src=image_url("uploaded", token.image_id, None),
                    key=f"uploadedimage-{index}",
                )
            )
        elif isinstance(token, PixivImageToken):
            flush()
            nodes.append(
                PixivIllustration(
                    illust_id=token.illust_id,
                    page=token.page,
                    src=image_url("pixiv", token.illust_id, token.page),
                    artwork_url=pixiv_artwork_url(token.illust_id, token.page),
                    key=f"pixivimage-{index}",
                )
            )
        else:
            raise TypeError(f"Unsupported token: {token!r}")
    flush()
    return nodes


def render_markup(
    raw: str,
    slug: str,
    image_url: ImageUrlResolver = default_image_url,
) -> list[ContentNode]:
    return build_nodes(tokenize(raw), slug=slug, image_url=image_url)


def title_from_nodes(nodes: Iterable[ContentNode], slug: str) -> str:
    for node in nodes:
        if isinstance(node, ChapterHeading) and node.title.strip():
            return node.title
    return fallback_title(slug)


# ---------- JSON payloads ----------


def _span_payload(span: InlineSpan) -> dict[str, object]:
    if isinstance(span, PlainText):
        return {"type": "text", "text": span.text}
    if isinstance(span, LineBreak):
        return {"type": "line_break"}
    if isinstance(span, JumpLink):
        return {
            "type": "jump",
            "target_slug": span.target_slug,
            "page_number": span.page_number,
        }
    if isinstance(span, ExternalLink):
        return {"type": "external_link", "title": span.title, "url": span.url}
    return {"type": "ruby", "base": span.base, "reading": span.reading}


def _node_payload(node: ContentNode) -> dict[str, object]:
    if isinstance(node, ChapterHeading):
        return {"type": "chapter", "key": node.key, "title": node.title}
    if isinstance(node, PageBreak):
        return {"type": "page_break", "key": node.key, "page": node.page}
    if isinstance(node, UploadedImage):
        return {
            "type": "uploaded_image",
            "key": node.key,
            "id": node.image_id,
            "src": node.src,
        }
    if isinstance(node, PixivIllustration):
        return {
            "type": "pixiv_illustration",
            "key": node.key,
            "illust_id": node.illust_id,
            "page": node.page,
            "src": node.src,
            "artwork_url": node.artwork_url,
        }
    if isinstance(node, Paragraph):
        return {
            "type": "paragraph",
            "key": node.key,
            "spans": [_span_payload(span) for span in node.spans],
        }
    return {"type": "empty_paragraph", "key": node.key}


def nodes_to_payload(nodes: Iterable[ContentNode]) -> list[dict[str, object]]:
    return [_node_payload(node) for node in nodes]

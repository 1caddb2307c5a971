from __future__ import annotations

from html import escape
from typing import Iterable
from urllib.parse import quote, urlparse

from .content import (
    ChapterHeading,
    ContentNode,
    EmptyParagraph,
    ExternalLink,
    InlineSpan,
    JumpLink,
    LineBreak,
    PageBreak,
    Paragraph,
    PixivIllustration,
    PlainText,
    RubyText,
    UploadedImage,
)
from .images import normalize_base_path

__all__ = [
    "chapter_label",
    "page_anchor",
    "work_url",
    "render_html",
    "render_text",
]

_SAFE_LINK_SCHEMES = {"http", "https", "mailto"}
PAGE_BREAK_RULE = "―" * 12
UNKNOWN_CHAPTER_TITLE = "Unknown Chapter"


def page_anchor(page: int | str) -> str:
    return f"page-{page}"


def work_url(slug: str, *, base_path: str = "") -> str:
    return f"{normalize_base_path(base_path)}/works/{quote(slug)}"


def chapter_label(title: str) -> str:
    return title if title.strip() else UNKNOWN_CHAPTER_TITLE


def _safe_href(url: str) -> str:
    candidate = url.strip()
    scheme = urlparse(candidate).scheme.lower()
    if scheme and scheme not in _SAFE_LINK_SCHEMES:
        return "#"
    return candidate or "#"


def _render_span_html(span: InlineSpan, base_path: str) -> str:
    if isinstance(span, PlainText):
        return escape(span.text, quote=False)
    if isinstance(span, LineBreak):
        return "<br>"
    if isinstance(span, JumpLink):
        href = f"{work_url(span.target_slug, base_path=base_path)}#{page_anchor(span.page_number)}"
        return (
            f'<a href="{escape(href)}" class="pixiv-jump-link">'
            f"ページ {escape(span.page_number)} へ</a>"
        )
    if isinstance(span, ExternalLink):
        return (
            f'<a href="{escape(_safe_href(span.url))}" target="_blank" '
            f'rel="noopener noreferrer" class="pixiv-external-link">{escape(span.title)}</a>'
        )
    if isinstance(span, RubyText):
        return (
            f'<ruby class="pixiv-ruby">{escape(span.base)}'
            f"<rp>(</rp><rt>{escape(span.reading)}</rt><rp>)</rp></ruby>"
        )
    raise TypeError(f"Unsupported span: {span!r}")


def _render_node_html(node: ContentNode, base_path: str) -> str:
    if isinstance(node, ChapterHeading):
        return f'<h2 class="pixiv-chapter-title">{escape(chapter_label(node.title))}</h2>'
    if isinstance(node, PageBreak):
        return f'<hr id="{page_anchor(node.page)}" class="pixiv-newpage">'
    if isinstance(node, UploadedImage):
        return (
            f'<img src="{escape(node.src)}" alt="Uploaded Image {escape(node.image_id)}" '
            'class="pixiv-uploaded-image">'
        )
    if isinstance(node, PixivIllustration):
        page_suffix = f", Page: {node.page}" if node.page else ""
        caption_suffix = f" (Page: {node.page})" if node.page else ""
        return (
            '<div class="pixiv-illustration-container">'
            f'<a href="{escape(node.artwork_url)}" target="_blank" rel="noopener noreferrer">'
            f'<img src="{escape(node.src)}" '
            f'alt="Pixiv Illustration ID: {escape(node.illust_id)}{escape(page_suffix)}" '
            'class="pixiv-illustration-image"></a>'
            f'<p class="pixiv-illustration-caption">Pixiv ID: {escape(node.illust_id)}'
            f"{escape(caption_suffix)}</p>"
            "</div>"
        )
    if isinstance(node, Paragraph):
        body = "".join(_render_span_html(span, base_path) for span in node.spans)
        return f'<p class="pixiv-text-paragraph">{body}</p>'
    if isinstance(node, EmptyParagraph):
        return '<p class="pixiv-empty-paragraph"></p>'
    raise TypeError(f"Unsupported node: {node!r}")


def render_html(nodes: Iterable[ContentNode], *, base_path: str = "") -> str:
    """
    Render content nodes as an HTML fragment.

    The fragment opens with the ``page-1`` anchor; every page break carries the
    anchor of the page it starts so jump links resolve.
    """
    parts = [f'<span id="{page_anchor(1)}" class="pixiv-page-anchor"></span>']
    parts.extend(_render_node_html(node, base_path) for node in nodes)
    return '<div class="pixiv-content-renderer">' + "\n".join(parts) + "</div>"


def _render_span_text(span: InlineSpan) -> str:
    if isinstance(span, PlainText):
        return span.text
    if isinstance(span, LineBreak):
        return "\n"
    if isinstance(span, JumpLink):
        return f"[→ページ {span.page_number}]"
    if isinstance(span, ExternalLink):
        return f"{span.title} <{span.url}>"
    if isinstance(span, RubyText):
        return f"{span.base}({span.reading})"
    raise TypeError(f"Unsupported span: {span!r}")


def render_text(nodes: Iterable[ContentNode]) -> str:
    """Render content nodes as plain text for terminals and quick previews."""
    blocks: list[str] = []
    for node in nodes:
        if isinstance(node, ChapterHeading):
            blocks.append(f"■ {chapter_label(node.title)}")
        elif isinstance(node, PageBreak):
            blocks.append(f"{PAGE_BREAK_RULE} {node.page}")
        elif isinstance(node, UploadedImage):
            blocks.append(f"[image {node.image_id}: {node.src}]")
        elif isinstance(node, PixivIllustration):
            label = f"{node.illust_id} p{node.page}" if node.page else node.illust_id
            blocks.append(f"[pixiv {label}: {node.artwork_url}]")
        elif isinstance(node, Paragraph):
            blocks.append("".join(_render_span_text(span) for span in node.spans))
        else:
            blocks.append("")
    return "\n\n".join(blocks)

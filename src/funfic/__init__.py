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
    build_nodes,
    nodes_to_payload,
    render_markup,
    title_from_nodes,
)
from .images import default_image_url, make_image_resolver, pixiv_artwork_url
from .library import Work, WorkNotFoundError, list_works, load_work, read_work_markup
from .markup import Token, extract_title, tokenize
from .render import render_html, render_text

__all__ = [
    "ChapterHeading",
    "ContentNode",
    "EmptyParagraph",
    "ExternalLink",
    "InlineSpan",
    "JumpLink",
    "LineBreak",
    "PageBreak",
    "Paragraph",
    "PixivIllustration",
    "PlainText",
    "RubyText",
    "UploadedImage",
    "Token",
    "tokenize",
    "extract_title",
    "build_nodes",
    "render_markup",
    "title_from_nodes",
    "nodes_to_payload",
    "default_image_url",
    "make_image_resolver",
    "pixiv_artwork_url",
    "render_html",
    "render_text",
    "Work",
    "WorkNotFoundError",
    "list_works",
    "load_work",
    "read_work_markup",
]

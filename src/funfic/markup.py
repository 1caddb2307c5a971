from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, Union

__all__ = [
    "TAG_PATTERN",
    "NewPageToken",
    "ChapterTitleToken",
    "UploadedImageToken",
    "PixivImageToken",
    "JumpToken",
    "ExternalLinkToken",
    "RubyToken",
    "TextToken",
    "Token",
    "iter_tokens",
    "tokenize",
    "extract_title",
    "fallback_title",
]

# One alternation for every tag so the leftmost tag wins and nothing overlaps.
# `.` does not cross newlines, so a tag never spans lines.
TAG_PATTERN = re.compile(
    r"(?P<newpage>\[newpage\])"
    r"|\[chapter:(?P<chapter>.*?)\]"
    r"|\[uploadedimage:(?P<uploaded>\d+)\]"
    r"|\[pixivimage:(?P<pixiv>\d+)(?:-(?P<pixiv_page>\d+))?\]"
    r"|\[jump:(?P<jump>\d+)\]"
    r"|\[\[jumpuri:(?P<link_title>.*?) > (?P<link_url>.*?)\]\]"
    r"|\[\[rb:(?P<ruby_base>.*?) > (?P<ruby_reading>.*?)\]\]"
)


@dataclass(frozen=True, slots=True)
class NewPageToken:
    pass


@dataclass(frozen=True, slots=True)
class ChapterTitleToken:
    title: str


@dataclass(frozen=True, slots=True)
class UploadedImageToken:
    image_id: str


@dataclass(frozen=True, slots=True)
class PixivImageToken:
    illust_id: str
    page: str | None = None


@dataclass(frozen=True, slots=True)
class JumpToken:
    page_number: str


@dataclass(frozen=True, slots=True)
class ExternalLinkToken:
    title: str
    url: str


@dataclass(frozen=True, slots=True)
class RubyToken:
    base: str
    reading: str


@dataclass(frozen=True, slots=True)
class TextToken:
    raw: str


Token = Union[
    NewPageToken,
    ChapterTitleToken,
    UploadedImageToken,
    PixivImageToken,
    JumpToken,
    ExternalLinkToken,
    RubyToken,
    TextToken,
]


def _token_from_match(match: re.Match[str]) -> Token:
    kind = match.lastgroup
    if kind == "newpage":
        return NewPageToken()
    if kind == "chapter":
        return ChapterTitleToken(match.group("chapter"))
    if kind == "uploaded":
        return UploadedImageToken(match.group("uploaded"))
    if kind in ("pixiv", "pixiv_page"):
        return PixivImageToken(match.group("pixiv"), match.group("pixiv_page"))
    if kind == "jump":
        return JumpToken(match.group("jump"))
    if kind in ("link_title", "link_url"):
        return ExternalLinkToken(match.group("link_title"), match.group("link_url"))
    if kind in ("ruby_base", "ruby_reading"):
        return RubyToken(match.group("ruby_base"), match.group("ruby_reading"))
    raise ValueError(f"Unhandled tag group: {kind!r}")


def iter_tokens(raw: str) -> Iterator[Token]:
    """
    Yield tokens for ``raw`` in source order.

    Text between tags is yielded verbatim as ``TextToken``; empty gaps between
    adjacent tags yield nothing. Concatenating the source spans of all tokens
    reproduces ``raw`` exactly.
    """
    position = 0
    for match in TAG_PATTERN.finditer(raw):
        start, end = match.span()
        if start > position:
            yield TextToken(raw[position:start])
        yield _token_from_match(match)
        position = end
    if position < len(raw):
        yield TextToken(raw[position:])


def tokenize(raw: str) -> list[Token]:
    return list(iter_tokens(raw))


def fallback_title(slug: str) -> str:
    return f"Work ID: {slug}"


def extract_title(raw: str, slug: str) -> str:
    """Return the first non-blank chapter title, or the slug-based fallback."""
    for token in iter_tokens(raw):
        if isinstance(token, ChapterTitleToken) and token.title.strip():
            return token.title
    return fallback_title(slug)

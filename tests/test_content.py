from __future__ import annotations

import json

from funfic.content import (
    ChapterHeading,
    EmptyParagraph,
    ExternalLink,
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
from funfic.markup import JumpToken, TextToken, extract_title


def _render(raw: str, slug: str = "story"):
    return render_markup(raw, slug)


def _spans(node) -> list:
    assert isinstance(node, Paragraph)
    return list(node.spans)


def test_empty_string_yields_no_nodes() -> None:
    assert _render("") == []


def test_block_order_is_preserved() -> None:
    nodes = _render("[chapter:A]x[newpage][chapter:B]")
    assert [type(node) for node in nodes] == [ChapterHeading, Paragraph, PageBreak, ChapterHeading]
    assert nodes[0].title == "A"
    assert _spans(nodes[1]) == [PlainText("x")]
    assert nodes[3].title == "B"


def test_double_newline_splits_paragraphs() -> None:
    nodes = _render("line1\n\nline2")
    assert len(nodes) == 2
    assert _spans(nodes[0]) == [PlainText("line1")]
    assert _spans(nodes[1]) == [PlainText("line2")]


def test_single_newline_inserts_line_breaks() -> None:
    nodes = _render("a\nb\nc")
    assert len(nodes) == 1
    assert _spans(nodes[0]) == [
        PlainText("a"),
        LineBreak(),
        PlainText("b"),
        LineBreak(),
        PlainText("c"),
    ]


def test_malformed_tag_degrades_to_text() -> None:
    nodes = _render("[chapter:Unterminated")
    assert len(nodes) == 1
    assert _spans(nodes[0]) == [PlainText("[chapter:Unterminated")]


def test_whitespace_only_yields_empty_paragraph() -> None:
    nodes = _render("   ")
    assert len(nodes) == 1
    assert isinstance(nodes[0], EmptyParagraph)


def test_blank_lines_and_breaks_are_not_content() -> None:
    nodes = _render(" \n　")
    assert len(nodes) == 1
    assert isinstance(nodes[0], EmptyParagraph)


def test_extra_blank_lines_become_empty_paragraph() -> None:
    nodes = _render("a\n\n\n\nb")
    assert [type(node) for node in nodes] == [Paragraph, EmptyParagraph, Paragraph]
    assert _spans(nodes[0]) == [PlainText("a")]
    assert _spans(nodes[2]) == [PlainText("b")]


def test_paragraph_keeps_untrimmed_spans() -> None:
    nodes = _render("  本文  \n")
    assert len(nodes) == 1
    assert _spans(nodes[0]) == [PlainText("  本文  "), LineBreak(), PlainText("")]


def test_pixiv_image_page_is_optional() -> None:
    without_page, with_page = _render("[pixivimage:555][pixivimage:555-2]")
    assert isinstance(without_page, PixivIllustration)
    assert without_page.illust_id == "555"
    assert without_page.page is None
    assert without_page.src == "/api/pixiv-images/555/0"
    assert without_page.artwork_url == "https://www.pixiv.net/artworks/555"
    assert isinstance(with_page, PixivIllustration)
    assert with_page.page == "2"
    assert with_page.src == "/api/pixiv-images/555/2"
    assert with_page.artwork_url == "https://www.pixiv.net/artworks/555#2"


def test_ruby_and_external_links_are_inline() -> None:
    nodes = _render("[[rb:漢字 > かんじ]]と[[jumpuri:Example > https://example.com]]")
    assert len(nodes) == 1
    assert _spans(nodes[0]) == [
        RubyText(base="漢字", reading="かんじ"),
        PlainText("と"),
        ExternalLink(title="Example", url="https://example.com"),
    ]


def test_leading_inline_tag_joins_following_paragraph() -> None:
    nodes = _render("[jump:2]次へ\n\n終わり")
    assert len(nodes) == 2
    assert _spans(nodes[0]) == [
        JumpLink(target_slug="story", page_number="2"),
        PlainText("次へ"),
    ]
    assert _spans(nodes[1]) == [PlainText("終わり")]


def test_lone_inline_tag_is_a_paragraph() -> None:
    nodes = _render("[[rb:漢字 > かんじ]]")
    assert len(nodes) == 1
    assert _spans(nodes[0]) == [RubyText(base="漢字", reading="かんじ")]


def test_jump_link_targets_current_work() -> None:
    nodes = build_nodes([JumpToken("4")], slug="my-work")
    assert _spans(nodes[0]) == [JumpLink(target_slug="my-work", page_number="4")]


def test_block_tag_flushes_before_emitting() -> None:
    nodes = _render("前文[uploadedimage:42]後文")
    assert [type(node) for node in nodes] == [Paragraph, UploadedImage, Paragraph]
    assert nodes[1].image_id == "42"
    assert nodes[1].src == "/api/uploaded-images/42"


def test_newlines_split_within_each_text_run() -> None:
    tokens = [TextToken("a\n"), TextToken("\nb")]
    nodes = build_nodes(tokens, slug="s")
    assert len(nodes) == 1
    assert _spans(nodes[0]) == [
        PlainText("a"),
        LineBreak(),
        PlainText(""),
        PlainText(""),
        LineBreak(),
        PlainText("b"),
    ]


def test_page_breaks_are_numbered() -> None:
    nodes = _render("一[newpage]二[newpage]三")
    breaks = [node for node in nodes if isinstance(node, PageBreak)]
    assert [node.page for node in breaks] == [2, 3]


def test_node_keys_are_unique() -> None:
    nodes = _render("[chapter:A]\n本文\n\n続き[newpage][pixivimage:1][uploadedimage:2]\n\n   ")
    keys = [node.key for node in nodes]
    assert all(keys)
    assert len(keys) == len(set(keys))


def test_custom_image_resolver_is_used() -> None:
    calls: list[tuple[str, str, str | None]] = []

    def resolver(kind, image_id, page):
        calls.append((kind, image_id, page))
        return f"https://cdn.example/{kind}/{image_id}/{page or '-'}"

    nodes = render_markup("[uploadedimage:7][pixivimage:8][pixivimage:9-3]", "s", resolver)
    assert calls == [("uploaded", "7", None), ("pixiv", "8", None), ("pixiv", "9", "3")]
    assert [node.src for node in nodes] == [
        "https://cdn.example/uploaded/7/-",
        "https://cdn.example/pixiv/8/-",
        "https://cdn.example/pixiv/9/3",
    ]


def test_title_from_nodes_matches_extract_title() -> None:
    for raw in ("[chapter:]前[chapter:第一話]", "no chapters", "[chapter:A][chapter:B]"):
        nodes = _render(raw, slug="w")
        assert title_from_nodes(nodes, "w") == extract_title(raw, "w")


def test_payload_is_json_serializable() -> None:
    raw = (
        "[chapter:序]\n[[rb:漢字 > かんじ]]\n[jump:2][[jumpuri:Ex > https://example.com]]"
        "[newpage][uploadedimage:1][pixivimage:2-3]  "
    )
    payload = nodes_to_payload(_render(raw))
    types = [entry["type"] for entry in payload]
    assert types == [
        "chapter",
        "paragraph",
        "page_break",
        "uploaded_image",
        "pixiv_illustration",
        "empty_paragraph",
    ]
    span_types = [span["type"] for span in payload[1]["spans"]]
    assert span_types == [
        "text",
        "line_break",
        "text",
        "ruby",
        "text",
        "line_break",
        "text",
        "jump",
        "external_link",
    ]
    assert payload[4]["page"] == "3"
    json.dumps(payload, ensure_ascii=False)

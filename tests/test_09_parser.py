#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Content Parser Tests
====================
  - links, fragments and the leading-colon form
  - categories and sort keys
  - redirects
  - nowiki / pre sections
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import pytest

from wikistore.services.parser import WikiLinkParser


# -----------------------------------------------------------------------------

@pytest.fixture
def parser() -> WikiLinkParser:
    return WikiLinkParser()


def _parse(parser: WikiLinkParser, content: str):
    return parser.parse("en", "Example", content)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 1. Links
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TestLinks:
    def test_plain_and_labelled(self, parser):
        output = _parse(parser, "See [[Finch]] and [[User:Alice|Alice]].")
        assert output.links == ["Finch", "User:Alice"]
        assert output.categories == {}
        assert output.redirect_to is None

    def test_fragment_dropped_and_deduplicated(self, parser):
        output = _parse(parser, "[[Finch#Diet]] [[Finch]] [[Finch#Song|song]]")
        assert output.links == ["Finch"]

    def test_fragment_only_link_ignored(self, parser):
        assert _parse(parser, "[[#Section]]").links == []

    def test_leading_colon_links_category(self, parser):
        output = _parse(parser, "[[:Category:Birds]]")
        assert output.links == ["Category:Birds"]
        assert output.categories == {}

    def test_empty_content(self, parser):
        output = _parse(parser, "")
        assert output.links == [] and output.categories == {}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 2. Categories
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TestCategories:
    def test_sort_keys(self, parser):
        output = _parse(parser, "[[Category:Birds|sparrow]] [[category:Small]] [[Category:Empty| ]]")
        assert output.categories == {
            "Category:Birds": "sparrow",
            "Category:Small": None,
            "Category:Empty": None,
        }
        assert output.links == []

    def test_first_sort_key_wins(self, parser):
        output = _parse(parser, "[[Category:Birds|a]] [[Category:Birds|b]]")
        assert output.categories == {"Category:Birds": "a"}

    def test_blank_category_name_is_a_link(self, parser):
        output = _parse(parser, "[[Category: ]]")
        assert output.categories == {}

    def test_translated_label(self):
        output = WikiLinkParser(category_label="Kategorie").parse("de", "Beispiel", "[[Kategorie:Vögel]]")
        assert output.categories == {"Kategorie:Vögel": None}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 3. Redirects and skipped regions
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TestRedirects:
    def test_redirect(self, parser):
        output = _parse(parser, "#REDIRECT [[Test2]]")
        assert output.redirect_to == "Test2"
        assert output.links == ["Test2"]

    @pytest.mark.parametrize("content", [
        "#redirect [[Test2]]",
        "  #REDIRECT: [[Test2|elsewhere]]",
        "#REDIRECT[[Test2]]\nmore text",
    ])
    def test_redirect_variants(self, parser, content):
        assert _parse(parser, content).redirect_to == "Test2"

    def test_redirect_must_lead(self, parser):
        assert _parse(parser, "text\n#REDIRECT [[Test2]]").redirect_to is None

    def test_redirect_content_round_trip(self, parser):
        content = parser.redirect_content("Help:Guide")
        assert content == "#REDIRECT [[Help:Guide]]"
        assert _parse(parser, content).redirect_to == "Help:Guide"


class TestSkippedRegions:
    def test_nowiki_and_pre(self, parser):
        content = (
            "<nowiki>[[NotALink]]</nowiki> [[Real]]\n"
            "<pre>\n[[Category:Hidden]]\n</pre>\n"
            "<NOWIKI>[[AlsoNot]]</NOWIKI>"
        )
        output = _parse(parser, content)
        assert output.links == ["Real"]
        assert output.categories == {}


# -----------------------------------------------------------------------------

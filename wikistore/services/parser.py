#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Content parser collaborator
===========================
The store never renders markup.  It only needs the metadata the write path
indexes: outbound links, category memberships and the redirect target.

Any object with ``parse()`` and ``redirect_content()`` will do; the
default WikiLinkParser understands the bracket syntax below.

Rules
-----
1. ``[[Target]]`` or ``[[Target|label]]`` is a link to Target.  A
   ``#fragment`` suffix is dropped.

2. ``[[Category:Name]]`` or ``[[Category:Name|sort key]]`` places the topic
   in that category instead of linking to it.

3. ``[[:Category:Name]]`` (leading colon) is an ordinary link.

4. Content starting with ``#REDIRECT [[Target]]`` redirects to Target; the
   target also counts as a link.

5. Brackets inside ``<nowiki>`` and ``<pre>`` sections are ignored.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import re
from typing import Optional, Protocol

from wikistore.schemas import NAMESPACE_SEPARATOR, ParserOutput


REDIRECT_MARKER = "#REDIRECT"

_LINK_RE = re.compile(r"\[\[([^\[\]|\n]+)(?:\|([^\[\]\n]*))?\]\]")
_REDIRECT_RE = re.compile(r"^\s*#REDIRECT\s*:?\s*\[\[([^\[\]|\n]+)(?:\|[^\[\]\n]*)?\]\]", re.IGNORECASE)
_SKIP_REGIONS = re.compile(
    r"(<nowiki>.*?</nowiki>"
    r"|<pre>.*?</pre>"
    r")",
    re.DOTALL | re.IGNORECASE,
)


# -----------------------------------------------------------------------------

class ContentParser(Protocol):

    def parse(self, tenant: str, topic_name: str, content: str) -> ParserOutput:
        ...

    def redirect_content(self, destination: str) -> str:
        ...


# -----------------------------------------------------------------------------

class WikiLinkParser:
    """
    Extract links, categories and redirects from bracket wiki syntax.

    Parameters
    ----------
    category_label : str
        Label of the category namespace, e.g. "Category".
    """

    def __init__(self, category_label: str = "Category") -> None:
        self.category_label = category_label

    def parse(self, tenant: str, topic_name: str, content: str) -> ParserOutput:
        output = ParserOutput()
        if not content:
            return output

        text = _SKIP_REGIONS.sub("", content)

        redirect = _REDIRECT_RE.match(text)
        if redirect:
            output.redirect_to = redirect.group(1).strip()

        for match in _LINK_RE.finditer(text):
            target = match.group(1).strip()
            extra = match.group(2)
            if not target:
                continue
            category = self._category_name(target)
            if category is not None:
                sort_key = extra.strip() if extra and extra.strip() else None
                output.categories.setdefault(category, sort_key)
                continue
            target = target.lstrip(NAMESPACE_SEPARATOR).strip()
            target = target.split("#", 1)[0].strip()
            if target and target not in output.links:
                output.links.append(target)
        return output

    def _category_name(self, target: str) -> Optional[str]:
        """Return the normalised category name, or None for a plain link."""
        if target.startswith(NAMESPACE_SEPARATOR):
            return None
        prefix, sep, name = target.partition(NAMESPACE_SEPARATOR)
        if not sep or prefix.strip().casefold() != self.category_label.casefold():
            return None
        name = name.strip()
        if not name:
            return None
        return f"{self.category_label}{NAMESPACE_SEPARATOR}{name}"

    def redirect_content(self, destination: str) -> str:
        return f"{REDIRECT_MARKER} [[{destination}]]"


# -----------------------------------------------------------------------------

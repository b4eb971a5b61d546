"""HTML sanitising that keeps safe markup and inline CSS styling."""

from __future__ import annotations

import re
from html.parser import HTMLParser
from urllib.parse import urlparse

from inbucket.sanitize.css import sanitize_style


def _escape(text: str) -> str:
    return (
        text.replace("&", "&amp;")
        .replace("'", "&#39;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&#34;")
    )


def _render(name: str, attrs: list[tuple[str, str]], self_closing: bool) -> str:
    parts = [f"<{name}"]
    for key, value in attrs:
        parts.append(f' {key}="{_escape(value)}"')
    if self_closing:
        parts.append("/")
    parts.append(">")
    return "".join(parts)


class _StyleTagFilter(HTMLParser):
    """Rewrites start tags with sanitised style attributes; passes the rest raw."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=False)
        self.out: list[str] = []

    def _tag(self, tag: str, attrs: list[tuple[str, str | None]], closing: bool) -> None:
        if not attrs:
            self.out.append(self.get_starttag_text() or "")
            return
        kept: list[tuple[str, str]] = []
        for key, value in attrs:
            val = value or ""
            if key.lower() == "style":
                val = sanitize_style(val)
                if not val:
                    continue
            kept.append((key, val))
        self.out.append(_render(tag, kept, closing))

    def handle_starttag(self, tag, attrs):
        self._tag(tag, attrs, False)

    def handle_startendtag(self, tag, attrs):
        self._tag(tag, attrs, True)

    def handle_endtag(self, tag):
        self.out.append(f"</{tag}>")

    def handle_data(self, data):
        self.out.append(data)

    def handle_entityref(self, name):
        self.out.append(f"&{name};")

    def handle_charref(self, name):
        self.out.append(f"&#{name};")

    def handle_comment(self, data):
        self.out.append(f"<!--{data}-->")

    def handle_decl(self, decl):
        self.out.append(f"<!{decl}>")

    def handle_pi(self, data):
        self.out.append(f"<?{data}>")

    def unknown_decl(self, data):
        self.out.append(f"<![{data}]>")


_ALLOWED_ELEMENTS = frozenset({
    "a", "abbr", "acronym", "address", "area", "article", "aside", "b", "bdi",
    "bdo", "blockquote", "br", "caption", "center", "cite", "code", "col",
    "colgroup", "dd", "del", "details", "dfn", "div", "dl", "dt", "em",
    "figcaption", "figure", "footer", "h1", "h2", "h3", "h4", "h5", "h6",
    "header", "hgroup", "hr", "i", "img", "ins", "kbd", "li", "map", "mark",
    "nav", "ol", "p", "pre", "q", "rp", "rt", "ruby", "s", "samp", "section",
    "small", "span", "strike", "strong", "sub", "summary", "sup", "table",
    "tbody", "td", "tfoot", "th", "thead", "time", "tr", "tt", "u", "ul", "var",
    "wbr",
})
_SKIP_CONTENT = frozenset({"script", "style"})
_NEED_ATTRS = frozenset({"a", "img"})
_ELEMENT_ATTRS: dict[str, frozenset[str]] = {
    "a": frozenset({"href"}),
    "img": frozenset({"src", "alt", "width", "height", "align", "hspace", "vspace"}),
    "blockquote": frozenset({"cite"}),
    "q": frozenset({"cite"}),
    "del": frozenset({"cite", "datetime"}),
    "ins": frozenset({"cite", "datetime"}),
    "time": frozenset({"datetime"}),
    "ol": frozenset({"type", "start", "reversed"}),
    "ul": frozenset({"type"}),
    "li": frozenset({"type", "value"}),
    "table": frozenset({"width", "height", "summary", "align", "bgcolor"}),
    "td": frozenset({"colspan", "rowspan", "align", "valign", "abbr", "headers", "scope", "width", "height"}),
    "th": frozenset({"colspan", "rowspan", "align", "valign", "abbr", "headers", "scope", "width", "height"}),
    "col": frozenset({"span", "width", "align", "valign"}),
    "colgroup": frozenset({"span", "width", "align", "valign"}),
    "details": frozenset({"open"}),
}
_URL_ATTRS = frozenset({"href", "src", "cite"})
_URL_SCHEMES = frozenset({"http", "https", "mailto"})
_ID_RE = re.compile(r"[a-zA-Z0-9:\-_.]+")


def _valid_url(value: str) -> bool:
    value = value.strip()
    if not value:
        return False
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return not parsed.scheme or parsed.scheme.lower() in _URL_SCHEMES


def _allowed_attr(tag: str, key: str, value: str) -> bool:
    if key in ("dir", "lang", "title", "style"):
        return True
    if key == "id":
        return bool(_ID_RE.fullmatch(value))
    if key in _ELEMENT_ATTRS.get(tag, frozenset()):
        return _valid_url(value) if key in _URL_ATTRS else True
    return False


class _Policy(HTMLParser):
    """Whitelist sanitiser for user-generated content."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.out: list[str] = []
        self._skip = 0
        self._dropped_anchors: list[bool] = []

    def _tag(self, tag: str, attrs: list[tuple[str, str | None]], closing: bool) -> None:
        if tag in _SKIP_CONTENT:
            if not closing:
                self._skip += 1
            return
        if self._skip or tag not in _ALLOWED_ELEMENTS:
            return
        kept = [(k, v or "") for k, v in attrs if _allowed_attr(tag, k, v or "")]
        if tag == "a" and any(k == "href" for k, _ in kept):
            kept.append(("rel", "nofollow"))
        dropped = tag in _NEED_ATTRS and not kept
        if tag == "a" and not closing:
            self._dropped_anchors.append(dropped)
        if not dropped:
            self.out.append(_render(tag, kept, closing))

    def handle_starttag(self, tag, attrs):
        self._tag(tag, attrs, False)

    def handle_startendtag(self, tag, attrs):
        self._tag(tag, attrs, True)

    def handle_endtag(self, tag):
        if tag in _SKIP_CONTENT:
            self._skip = max(0, self._skip - 1)
            return
        if self._skip or tag not in _ALLOWED_ELEMENTS:
            return
        if tag == "a" and self._dropped_anchors and self._dropped_anchors.pop():
            return
        self.out.append(f"</{tag}>")

    def handle_data(self, data):
        if not self._skip:
            self.out.append(_escape(data))


def sanitize_style_tags(text: str) -> str:
    """Rewrite every tag's style attribute to hold only allowed CSS."""
    parser = _StyleTagFilter()
    parser.feed(text)
    parser.close()
    return "".join(parser.out)


def sanitize_html(text: str) -> str:
    """Sanitise ``text`` while trying to preserve inline CSS styling."""
    parser = _Policy()
    parser.feed(sanitize_style_tags(text))
    parser.close()
    return "".join(parser.out)
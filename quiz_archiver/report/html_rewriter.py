"""Streaming HTML post-processor for full-page attempt reports."""

import html
from collections.abc import Callable
from html.parser import HTMLParser

ImageHandler = Callable[[dict[str, str | None]], None]


class HtmlRewriter(HTMLParser):
    """Re-emits an HTML document while injecting head content and rewriting images.

    Markup that is not touched is written back exactly as it was read. ``<img>``
    attributes are handed to ``image_handler`` as an ordered dict that may be
    modified in place.
    """

    def __init__(
        self,
        head_html: str = "",
        image_handler: ImageHandler | None = None,
    ) -> None:
        super().__init__(convert_charrefs=False)
        self._head_html = head_html
        self._image_handler = image_handler
        self._parts: list[str] = []
        self._head_injected = False

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        self._parts.append(self._rewrite_tag(tag, attrs, closed=False))

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        self._parts.append(self._rewrite_tag(tag, attrs, closed=True))

    def handle_endtag(self, tag: str) -> None:
        if tag == "head" and not self._head_injected:
            self._parts.append(self._head_html)
            self._head_injected = True
        self._parts.append(f"</{tag}>")

    def handle_data(self, data: str) -> None:
        self._parts.append(data)

    def handle_entityref(self, name: str) -> None:
        self._parts.append(f"&{name};")

    def handle_charref(self, name: str) -> None:
        self._parts.append(f"&#{name};")

    def handle_comment(self, data: str) -> None:
        self._parts.append(f"<!--{data}-->")

    def handle_decl(self, decl: str) -> None:
        self._parts.append(f"<!{decl}>")

    def handle_pi(self, data: str) -> None:
        self._parts.append(f"<?{data}>")

    def unknown_decl(self, data: str) -> None:
        self._parts.append(f"<![{data}]>")

    def get_html(self) -> str:
        """Return the rewritten document. Head content is prepended if there was no head."""
        if not self._head_injected and self._head_html:
            return self._head_html + "".join(self._parts)
        return "".join(self._parts)

    def _rewrite_tag(self, tag: str, attrs: list[tuple[str, str | None]], closed: bool) -> str:
        original = self.get_starttag_text() or ""
        if tag != "img" or self._image_handler is None:
            return original

        attributes = dict(attrs)
        self._image_handler(attributes)
        return _build_tag(tag, attributes, closed)


def _build_tag(tag: str, attributes: dict[str, str | None], closed: bool) -> str:
    parts = [tag]
    for key, value in attributes.items():
        if value is None:
            parts.append(key)
        else:
            parts.append(f'{key}="{html.escape(value, quote=True)}"')
    return f"<{' '.join(parts)}{' /' if closed else ''}>"


def rewrite_html(
    document: str,
    head_html: str = "",
    image_handler: ImageHandler | None = None,
) -> str:
    parser = HtmlRewriter(head_html=head_html, image_handler=image_handler)
    parser.feed(document)
    parser.close()
    return parser.get_html()

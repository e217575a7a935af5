import html

from quiz_archiver.report.base import BasePageChrome


class DefaultPageChrome(BasePageChrome):
    """Minimal page layout following the host site's navbar, page and footer structure."""

    def __init__(self, site_name: str = "Moodle") -> None:
        self._site_name = site_name

    def header(self, title: str, body_classes: list[str]) -> str:
        return (
            "<!DOCTYPE html>\n"
            '<html dir="ltr" lang="en">\n'
            "<head>\n"
            '<meta charset="utf-8">\n'
            f"<title>{html.escape(title)}</title>\n"
            "</head>\n"
            f'<body class="{" ".join(body_classes)}">\n'
            f'<nav class="navbar">{html.escape(self._site_name)}</nav>\n'
            '<div id="page-wrapper">\n'
            '<div id="page">\n'
            '<div role="main">\n'
        )

    def footer(self) -> str:
        return (
            "</div>\n"
            "</div>\n"
            "</div>\n"
            f"<footer>{html.escape(self._site_name)}</footer>\n"
            "</body>\n"
            "</html>\n"
        )

"""URL normalization used when inlining images."""

import re
from urllib.parse import urlsplit

_QUERY_AND_FRAGMENT = re.compile(r"^([^?&#]*).*$", re.DOTALL)
_DOUBLE_OR_DOT_SEGMENT = re.compile(r"/\.?/")
_PARENT_SEGMENT = re.compile(r"/(?!\.\.)[^/]+/\.\./")


def strip_query_and_fragment(url: str) -> str:
    """Remove everything from the first ``?``, ``&`` or ``#`` on."""
    match = _QUERY_AND_FRAGMENT.match(url)
    return match.group(1) if match else url


def ensure_absolute_url(url: str, base: str) -> str:
    """Resolve ``url`` against ``base`` unless it already carries a scheme.

    Query- and fragment-only URLs are appended to the base verbatim, root
    relative URLs replace the base path, and ``./``, ``../`` and duplicate
    slashes are collapsed.
    """
    if urlsplit(url).scheme:
        return url
    if not url:
        return base
    if url[0] in "#?":
        return base + url

    parsed = urlsplit(base)
    path = re.sub(r"/[^/]*$", "", parsed.path)
    if url[0] == "/":
        path = ""

    absolute = f"{parsed.netloc}{path}/{url}"
    count = 1
    while count > 0:
        absolute, n_dot = _DOUBLE_OR_DOT_SEGMENT.subn("/", absolute)
        absolute, n_parent = _PARENT_SEGMENT.subn("/", absolute)
        count = n_dot + n_parent

    return f"{parsed.scheme}://{absolute}"


def file_extension(url: str) -> str:
    """Lower-case extension of the last path segment, without the dot."""
    segment = urlsplit(url).path.rsplit("/", 1)[-1]
    if "." not in segment:
        return ""
    return segment.rsplit(".", 1)[-1].lower()

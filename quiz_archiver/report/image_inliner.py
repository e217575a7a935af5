"""Inlining of ``<img>`` sources as base64 data URIs.

Every image is processed independently and on a best-effort basis: whenever a
source cannot be resolved the original ``src`` is kept and the reason is
recorded in ``x-debug-*`` attributes on the element.
"""

import base64
import re
from urllib.parse import unquote

import httpx

from quiz_archiver.database.repositories.file_repository import FileRepository
from quiz_archiver.logging.logger import Log
from quiz_archiver.report.urls import ensure_absolute_url, file_extension, strip_query_and_fragment
from quiz_archiver.storage.file_store import FileStore

ALLOWED_IMAGE_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "svg": "image/svg+xml",
    "gif": "image/gif",
    "webp": "image/webp",
    "bmp": "image/bmp",
    "ico": "image/x-icon",
    "tiff": "image/tiff",
}

PLUGINFILE_URL = re.compile(
    r"^(?P<wwwroot>https?://.+?)?/pluginfile\.php"
    r"/(?P<contextid>[^/]+)/(?P<component>[^/]+)/(?P<filearea>[^/]+)"
    r"(?:/(?P<itemid>\d+))?(?:/(?P<args>.*))?/(?P<filename>[^/?&#]+)$"
)

# Question and qtype files carry question bank ID and slot after the file area.
PLUGINFILE_QUESTION_URL = re.compile(
    r"^(?P<wwwroot>https?://.+?)?/pluginfile\.php"
    r"/(?P<contextid>[^/]+)/(?P<component>[^/]+)/(?P<filearea>[^/]+)"
    r"/(?P<questionbank_id>[^/]+)/(?P<question_slot>[^/]+)/(?P<itemid>\d+)"
    r"/(?P<filename>[^/?&#]+)$"
)

STACKPLOT_URL = re.compile(
    r"^(?P<wwwroot>https?://.+?)?/question/type/stack/plot\.php/(?P<filename>[^/#?&]+\.(?:png|svg))$"
)

THEME_IMAGE_URL = re.compile(
    r"^(?P<wwwroot>https?://.+?)?/theme/image\.php/"
    r"(?P<themename>[^/]+)/(?P<component>[^/]+)/(?P<rev>[^/]+)/(?P<image>.+)$"
)


class ImageInliner:
    """Replaces image sources with data URIs, reading internal files directly where possible."""

    def __init__(
        self,
        wwwroot: str,
        internal_wwwroot: str,
        file_repo: FileRepository,
        file_store: FileStore,
        http_client: httpx.Client,
    ) -> None:
        self._wwwroot = wwwroot.rstrip("/")
        self._internal_wwwroot = internal_wwwroot.rstrip("/")
        self._base_url = (self._internal_wwwroot or self._wwwroot) + "/"
        self._file_repo = file_repo
        self._file_store = file_store
        self._http = http_client

    def __call__(self, attributes: dict[str, str | None]) -> None:
        if not self.inline(attributes):
            attributes["x-debug-inlining-failed"] = "true"

    def inline(self, attributes: dict[str, str | None]) -> bool:
        """Try to inline the image described by ``attributes``.

        Returns True if ``src`` was replaced by a data URI.
        """
        src = attributes.get("src")
        if not src:
            attributes["x-debug-notice"] = "no source present"
            return False
        attributes["x-original-source"] = src

        url = strip_query_and_fragment(src)
        if self._internal_wwwroot:
            url = url.replace(self._wwwroot, self._internal_wwwroot)
        url = ensure_absolute_url(url, self._base_url)

        if not url.startswith(("http://", "https://")):
            return self._reject(attributes, src, "not a web URL")

        extension = file_extension(url)
        mimetype = ALLOWED_IMAGE_TYPES.get(extension)
        if mimetype is None and not THEME_IMAGE_URL.match(url):
            return self._reject(attributes, src, "image type not allowed")

        data: bytes | None = None
        is_internal = url.startswith(self._base_url)
        if is_internal:
            match = PLUGINFILE_URL.match(url)
            if match:
                attributes["x-url-type"] = "MOODLE_URL_PLUGINFILE"
                component = match.group("component")
                if component == "question" or component.startswith("qtype_"):
                    match = PLUGINFILE_QUESTION_URL.match(url)
                    if not match:
                        attributes["x-url-type"] = "MOODLE_URL_PLUGINFILE_QUESTION_AND_QTYPE"
                        return self._reject(attributes, src, "question file URL not recognized")
                data = self._read_pluginfile(match)
                if data is None:
                    return self._reject(attributes, src, "moodledata file not found")
            elif match := STACKPLOT_URL.match(url):
                attributes["x-url-type"] = "MOODLE_URL_STACKPLOT"
                data = self._file_store.read_plot(unquote(match.group("filename")))
                if data is None:
                    return self._reject(attributes, src, "stack plot file not readable")
            else:
                attributes["x-debug-internal-url-without-handler"] = ""

        if data is None:
            if THEME_IMAGE_URL.match(url):
                attributes["x-url-type"] = "MOODLE_URL_THEME_IMAGE"
            else:
                attributes["x-url-type"] = "GENERIC"

            try:
                response = self._http.get(url)
            except httpx.HTTPError as exc:
                attributes["x-debug-more"] = str(exc)
                return self._reject(attributes, src, "HTTP request failed")
            if response.status_code != 200:
                attributes["x-debug-more"] = f"HTTP {response.status_code}"
                return self._reject(attributes, src, "HTTP request failed")
            data = response.content

            if mimetype is None:
                mimetype = response.headers.get("content-type", "").split(";")[0].strip().lower()
                if mimetype not in ALLOWED_IMAGE_TYPES.values():
                    return self._reject(attributes, src, "image type from response header is not allowed")

        if not data:
            return self._reject(attributes, src, "no image data")

        encoded = base64.b64encode(data).decode("ascii")
        attributes["src"] = f"data:{mimetype};base64,{encoded}"
        Log.debug("Inlined image", source=src, url_type=attributes.get("x-url-type"), size=len(data))
        return True

    def _read_pluginfile(self, match: re.Match[str]) -> bytes | None:
        contextid = match.group("contextid")
        if not contextid.isdigit():
            return None

        args = match.groupdict().get("args")
        filepath = f"/{args.strip('/')}/" if args and args.strip("/") else "/"
        itemid = match.group("itemid")

        stored = self._file_repo.get_file(
            contextid=int(contextid),
            component=match.group("component"),
            filearea=match.group("filearea"),
            itemid=int(itemid) if itemid else 0,
            filepath=filepath,
            filename=unquote(match.group("filename")),
        )
        if stored is None:
            return None
        try:
            return self._file_store.read(stored)
        except FileNotFoundError:
            return None

    @staticmethod
    def _reject(attributes: dict[str, str | None], src: str, notice: str) -> bool:
        attributes["x-debug-notice"] = notice
        Log.warning("Image not inlined", source=src, reason=notice)
        return False

import hashlib
import re
from pathlib import Path

from quiz_archiver.database.models import StoredFile

_CHUNK_SIZE = 64 * 1024
_UNSAFE_FILENAME_CHARS = re.compile(r"[^\w.\-]")


def content_file_path(filedir: Path, contenthash: str) -> Path:
    """Build path to a content blob: {filedir}/{h[0:2]}/{h[2:4]}/{h}"""
    return filedir / contenthash[0:2] / contenthash[2:4] / contenthash


def clean_filename(filename: str) -> str:
    """Reduce a filename to a single safe path component."""
    name = Path(filename.replace("\\", "/")).name
    name = _UNSAFE_FILENAME_CHARS.sub("_", name)
    return name.lstrip(".")


class FileStore:
    """Resolves content-addressed files below the data root and reads their bytes."""

    DATAROOT = Path("/var/www/moodledata")

    def __init__(self, dataroot: Path | None = None) -> None:
        self._dataroot = dataroot if dataroot is not None else self.DATAROOT

    def read(self, file: StoredFile) -> bytes:
        """Read the content of a stored file.

        Raises:
            FileNotFoundError: if the content blob does not exist at resolved path.
        """
        path = self._resolve_path(file)
        if not path.exists():
            raise FileNotFoundError(f"Content of file {file.id} not found: {path}")
        return path.read_bytes()

    def sha256(self, file: StoredFile) -> str:
        """Compute the hex SHA-256 digest of a stored file's content.

        Raises:
            FileNotFoundError: if the content blob does not exist at resolved path.
        """
        path = self._resolve_path(file)
        if not path.exists():
            raise FileNotFoundError(f"Content of file {file.id} not found: {path}")
        digest = hashlib.sha256()
        with path.open("rb") as fh:
            for chunk in iter(lambda: fh.read(_CHUNK_SIZE), b""):
                digest.update(chunk)
        return digest.hexdigest()

    def read_plot(self, filename: str) -> bytes | None:
        """Read a generated plot image. Returns None if it is missing or unreadable."""
        name = clean_filename(filename)
        if not name:
            return None
        path = self._dataroot / "stack" / "plots" / name
        try:
            return path.read_bytes()
        except OSError:
            return None

    def _resolve_path(self, file: StoredFile) -> Path:
        return content_file_path(self._dataroot / "filedir", file.contenthash)

import logging
import mimetypes
import re
import unicodedata
from pathlib import Path, PurePosixPath

from exam_grader.core.errors import NotFound, ValidationError

logger = logging.getLogger(__name__)

URL_PREFIX = "/uploads"

# mime types the oracle is told about for essay files
_ESSAY_MIME_TYPES = {
    ".pdf": "application/pdf",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".doc": "application/msword",
    ".txt": "text/plain",
}


def normalize_name_for_storage(name: str) -> str:
    """ASCII, lowercase, underscores for whitespace, nothing but [a-z0-9_.-]."""
    name = name.replace("đ", "d").replace("Đ", "D")
    decomposed = unicodedata.normalize("NFD", name)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    lowered = re.sub(r"\s+", "_", stripped.lower())
    return re.sub(r"[^a-z0-9_.-]", "", lowered)


def guess_mime_type(file_name: str) -> str:
    suffix = PurePosixPath(file_name).suffix.lower()
    if suffix in _ESSAY_MIME_TYPES:
        return _ESSAY_MIME_TYPES[suffix]
    return mimetypes.guess_type(file_name)[0] or "application/octet-stream"


class LocalFileStore:
    """
    Files on local disk under ``root``, published at ``base_url + /uploads``.

    Paths are relative POSIX paths such as ``essays/3/ann_1700000000000.pdf``.
    Writes never overwrite: callers pick collision-resistant names.
    """

    def __init__(self, root: Path, base_url: str):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if not target.is_relative_to(self.root.resolve()):
            raise ValidationError(f"Path escapes the upload directory: {path}")
        return target

    def url_for(self, path: str) -> str:
        return f"{self.base_url}{URL_PREFIX}/{path}"

    def path_for_url(self, url: str) -> str:
        relative = url
        if relative.startswith(self.base_url):
            relative = relative[len(self.base_url):]
        if relative.startswith(URL_PREFIX + "/"):
            relative = relative[len(URL_PREFIX) + 1:]
        return relative.lstrip("/")

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def write(self, path: str, data: bytes) -> str:
        target = self._resolve(path)
        if target.exists():
            raise ValidationError(f"File already exists: {path}")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.info("Stored %s (%d bytes)", path, len(data))
        return self.url_for(path)

    def delete(self, path: str) -> None:
        target = self._resolve(path)
        if target.is_file():
            target.unlink()
            logger.info("Removed %s", path)

    def read(self, url: str) -> bytes:
        path = self.path_for_url(url)
        target = self._resolve(path)
        if not target.is_file():
            raise NotFound("File not found")
        return target.read_bytes()

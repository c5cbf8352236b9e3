"""Local file access and download response headers."""

import os
import re
from collections.abc import Iterator
from pathlib import Path
from urllib.parse import quote

CHUNK_SIZE = 64 * 1024

_NON_PRINTABLE_ASCII = re.compile(r"[^\x20-\x7E]")


def download_root() -> Path:
    return Path(os.getenv("DOWNLOAD_ROOT", "uploads")).resolve()


def resolve_path(file_path: str) -> Path | None:
    """Resolve a stored path; relative paths must stay inside the download root."""
    path = Path(file_path)
    if path.is_absolute():
        return path.resolve()

    root = download_root()
    resolved = (root / path).resolve()
    if not resolved.is_relative_to(root):
        return None
    return resolved


def iter_file(path: Path, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    with path.open("rb") as handle:
        while chunk := handle.read(chunk_size):
            yield chunk


def content_disposition(file_name: str) -> str:
    """``attachment`` with an ASCII fallback name plus the RFC 5987 UTF-8 name."""
    safe_name = _NON_PRINTABLE_ASCII.sub("", file_name).replace('"', "").replace("\\", "")
    if not safe_name:
        safe_name = "download"
    return f"attachment; filename=\"{safe_name}\"; filename*=UTF-8''{quote(file_name, safe='')}"

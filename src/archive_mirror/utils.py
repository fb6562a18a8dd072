"""
Utility functions for archive-mirror.

This module provides helpers for remote path handling, filesystem-safe
naming and file comparison. The naming helpers touch the filesystem and are
only called from the saver's I/O worker.
"""

import hashlib
import re
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Optional, Tuple, Union

# Characters that are illegal (or a separator) on at least one common filesystem
_ILLEGAL_NAME_CHARS = re.compile(r'[\\/:*?"<>|]')

# "name_3" style suffix added by ensure_unique_name
_COUNTER_SUFFIX = re.compile(r"_\d+")

_COMPARE_CHUNK = 64 * 1024


def normalize_path(path: Optional[str]) -> str:
    """
    Make a remote path relative by stripping one leading separator.

    Example:
        normalize_path("/item-sorters/is-001")  # "item-sorters/is-001"
        normalize_path(None)                    # ""
    """
    if path is None:
        return ""
    return path[1:] if path.startswith("/") else path


def join_url(base: str, *parts: Optional[str]) -> str:
    """
    Join relative remote path segments onto a base URL.

    Each segment has its leading separator stripped first, so absolute-looking
    manifest paths never replace the base.
    """
    url = base.rstrip("/")
    for part in parts:
        part = normalize_path(part)
        if part:
            url = f"{url}/{part}"
    return url


def sha256_file(file_path: Union[str, Path]) -> str:
    """
    Calculate the SHA256 checksum of a file.

    The file is read in 8KB chunks so files of any size can be hashed
    without loading them into memory.

    Returns:
        Checksum string in the format "sha256:hexdigest"
    """
    sha256_hash = hashlib.sha256()
    with open(file_path, "rb") as f:
        for byte_block in iter(lambda: f.read(8192), b""):
            sha256_hash.update(byte_block)
    return f"sha256:{sha256_hash.hexdigest()}"


def sanitize_file_name(name: Optional[str], default: str) -> str:
    """
    Reduce a published attachment name to a safe single path component.

    Only the final path component is kept (so "../../x" becomes "x"), and
    characters illegal on Windows, Linux or macOS are replaced with "_".

    Example:
        sanitize_file_name("maps/Big: Sorter?.litematic", "download")
        # Returns: "Big_ Sorter_.litematic"
    """
    if not name:
        return default
    final = PurePosixPath(name.replace("\\", "/")).name
    clean = _ILLEGAL_NAME_CHARS.sub("_", final).strip()
    if clean in ("", ".", ".."):
        return default
    return clean


def split_extension(file_name: str) -> Tuple[str, str]:
    """
    Split "name.ext" into ("name", ".ext").

    A leading dot does not start an extension: ".hidden" -> (".hidden", "").
    """
    dot = file_name.rfind(".")
    if dot > 0:
        return file_name[:dot], file_name[dot:]
    return file_name, ""


def ensure_unique_name(directory: Path, file_name: str) -> Path:
    """
    Pick a path in ``directory`` that does not exist yet.

    Tries ``name.ext``, then ``name_1.ext``, ``name_2.ext``, ...
    """
    candidate = directory / file_name
    stem, ext = split_extension(file_name)
    counter = 1
    while candidate.exists():
        candidate = directory / f"{stem}_{counter}{ext}"
        counter += 1
    return candidate


def ensure_unique_directory(directory: Path, name: str) -> Path:
    """Pick a directory path ``name``, ``name_1``, ... that does not exist yet."""
    candidate = directory / name
    counter = 1
    while candidate.exists():
        candidate = directory / f"{name}_{counter}"
        counter += 1
    return candidate


def _same_content(path: Path, data: bytes) -> bool:
    view = memoryview(data)
    offset = 0
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(_COMPARE_CHUNK), b""):
            if view[offset:offset + len(block)] != block:
                return False
            offset += len(block)
    return offset == len(data)


def find_identical_file(directory: Path, file_name: str, data: bytes) -> Optional[Path]:
    """
    Find an existing file holding exactly ``data`` under the same base name.

    Only ``name.ext`` and the ``name_<n>.ext`` variants produced by
    :func:`ensure_unique_name` are considered. Size is compared before content.

    Returns:
        Path of the first identical file (in name order), or None
    """
    stem, ext = split_extension(file_name)
    if not directory.is_dir():
        return None
    for path in sorted(directory.iterdir()):
        name = path.name
        # Stem and extension must not overlap ("a.b" is not a variant of "a..b")
        if len(name) < len(stem) + len(ext):
            continue
        if not (name.startswith(stem) and name.endswith(ext)):
            continue
        middle = name[len(stem):len(name) - len(ext)]
        if middle and not _COUNTER_SUFFIX.fullmatch(middle):
            continue
        if not path.is_file():
            continue
        if path.stat().st_size != len(data):
            continue
        if _same_content(path, data):
            return path
    return None


def format_timestamp(millis: int) -> str:
    """Render an epoch-milliseconds timestamp as a UTC date, "-" when unset."""
    if not millis or millis <= 0:
        return "-"
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc).strftime("%Y-%m-%d")

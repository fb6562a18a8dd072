"""
Download attachments and persist them to the local download folders.

Plain files are written under a collision-free name, unless a byte-identical
copy already sits next to them. World archives (ZIPs holding one or more
directories with a ``level.dat``) are extracted into fresh sibling
directories, under these bounds:

1. no entry may resolve outside its destination directory (zip-slip),
2. no entry may declare or produce more than ``MAX_ENTRY_BYTES``,
3. the archive may not produce more than ``MAX_TOTAL_UNZIPPED_BYTES``,
4. the archive may not hold more than ``MAX_ENTRY_COUNT`` files,
5. ``__MACOSX`` metadata is skipped entirely.

The network fetch runs on the event loop; every filesystem step runs on a
single dedicated worker thread, so overlapping downloads never interleave
their "identical file" and "unique name" checks.
"""

import asyncio
import logging
import os
import posixpath
import shutil
import tempfile
import zipfile
import zlib
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Union

from . import config
from .client import ArchiveClient, ProgressCallback
from .errors import AttachmentError, ExtractionSafetyError, StorageError
from .models import Attachment, SaveResult
from .utils import (
    ensure_unique_directory,
    ensure_unique_name,
    find_identical_file,
    sanitize_file_name,
    sha256_file,
)

logger = logging.getLogger(__name__)

# Raised by zipfile while inflating damaged, truncated or encrypted entry data
_CORRUPT_ENTRY_ERRORS = (zipfile.BadZipFile, zlib.error, RuntimeError, NotImplementedError, EOFError)


@dataclass(frozen=True)
class WorldTarget:
    """A world root inside the archive and the directory it extracts to."""
    root: str
    directory: Path


def _is_junk(name: str) -> bool:
    parts = name.split("/")
    return any(part in config.JUNK_DIRECTORIES for part in parts[:-1]) or parts[-1] in config.JUNK_DIRECTORIES


def _entry_name(info: zipfile.ZipInfo) -> str:
    return info.filename.replace("\\", "/")


def _escapes(name: str) -> bool:
    """True when an archive path is absolute or climbs above its root."""
    if name.startswith("/") or (len(name) > 1 and name[1] == ":"):
        return True
    normalized = posixpath.normpath(name)
    return normalized == ".." or normalized.startswith("../")


def _real_entries(zf: zipfile.ZipFile) -> Iterator[zipfile.ZipInfo]:
    """Non-directory, non-junk entries in archive order."""
    for info in zf.infolist():
        if info.is_dir():
            continue
        name = _entry_name(info)
        if _is_junk(name):
            logger.debug("Skipping junk archive entry %s", name)
            continue
        yield info


def scan_world_roots(zf: zipfile.ZipFile) -> List[str]:
    """
    Validate every entry and collect world roots (parents of ``level.dat``).

    How it works:
        1. Walk the real entries (directories and ``__MACOSX`` junk are
           already filtered out by ``_real_entries``)
        2. Reject the archive on the first entry that is absolute or climbs
           above the archive root with ``..``
        3. Reject it on the first entry whose declared size is over
           ``MAX_ENTRY_BYTES``
        4. Reject it once more than ``MAX_ENTRY_COUNT`` real entries are seen
        5. Record the parent directory of every ``level.dat`` as a world root

    Why a separate pass?
        Only the central directory is read here, so a hostile archive is
        refused before a single directory is created on disk. The declared
        sizes can lie; ``_copy_entry`` enforces the same ceilings again on
        the bytes actually inflated.

    Returns:
        Roots in discovery order; "" means the archive root itself

    Example:
        scan_world_roots(zf)  # ["Survival", "Creative"] for two worlds
    """
    roots: List[str] = []
    count = 0
    for info in _real_entries(zf):
        name = _entry_name(info)

        # -------------------------------------------------------
        # Safety checks on the central directory record
        # -------------------------------------------------------
        if _escapes(name):
            logger.warning("Rejecting archive entry outside extraction folder: %s", name)
            raise ExtractionSafetyError("path_escape", name)
        if info.file_size > config.MAX_ENTRY_BYTES:
            logger.warning("Rejecting oversized archive entry %s (%d bytes)", name, info.file_size)
            raise ExtractionSafetyError("entry_too_large", name)
        count += 1
        if count > config.MAX_ENTRY_COUNT:
            logger.warning("Rejecting archive with more than %d files", config.MAX_ENTRY_COUNT)
            raise ExtractionSafetyError("too_many_entries")

        # -------------------------------------------------------
        # World root discovery
        # -------------------------------------------------------
        if posixpath.basename(name) == config.WORLD_MARKER:
            root = posixpath.dirname(name)
            if root not in roots:
                roots.append(root)
    return roots


def match_world(name: str, targets: List[WorldTarget]) -> Optional[WorldTarget]:
    """
    Route an entry to the world root it lives under.

    The deepest matching root wins; entries under no root return None.
    """
    best = None
    for target in targets:
        root = target.root
        if root == "" or name == root or name.startswith(root + "/"):
            if best is None or len(root) > len(best.root):
                best = target
    return best


def _copy_entry(zf: zipfile.ZipFile, info: zipfile.ZipInfo, destination: Path, total_so_far: int) -> int:
    """
    Stream one entry to disk, enforcing the per-entry and aggregate ceilings
    on the bytes actually produced.

    How it works:
        1. Inflate the entry in ``EXTRACT_CHUNK_SIZE`` pieces
        2. Before writing a chunk, check it keeps the entry under
           ``MAX_ENTRY_BYTES`` and the whole archive under
           ``MAX_TOTAL_UNZIPPED_BYTES``
        3. On any failure (limit hit, corrupt data, disk error) delete the
           partially written file and re-raise

    Why not trust ``info.file_size``?
        The size in the central directory is whatever the archive's author
        wrote there. A zip bomb declares a few bytes and inflates to
        gigabytes, so only the counted output is authoritative.

    Args:
        zf: Open archive
        info: Entry to copy
        destination: File to create
        total_so_far: Bytes already written for this archive

    Returns:
        Bytes written
    """
    written = 0
    try:
        with zf.open(info) as source, open(destination, "wb") as target:
            for chunk in iter(lambda: source.read(config.EXTRACT_CHUNK_SIZE), b""):
                if written + len(chunk) > config.MAX_ENTRY_BYTES:
                    raise ExtractionSafetyError("entry_too_large", info.filename)
                if total_so_far + written + len(chunk) > config.MAX_TOTAL_UNZIPPED_BYTES:
                    raise ExtractionSafetyError("archive_too_large")
                target.write(chunk)
                written += len(chunk)
    except BaseException:
        destination.unlink(missing_ok=True)
        raise
    return written


def _world_name(root: str, default_name: str) -> str:
    if not root:
        return default_name
    return sanitize_file_name(posixpath.basename(root), default_name)


def extract_worlds_from_zip(
    data: bytes,
    base_dir: Path,
    default_name: str,
    temp_dir: Optional[Union[str, Path]] = None,
) -> Path:
    """
    Extract every world of a ZIP archive into its own directory under ``base_dir``.

    The archive is staged in a temporary file, which is removed on every exit
    path.

    Args:
        data: Archive bytes
        base_dir: Folder the world directories are created in
        default_name: Directory name for a world whose ``level.dat`` sits at
                      the archive root
        temp_dir: Where to stage the archive (system default when None)

    Returns:
        Directory of the first world discovered

    Raises:
        ExtractionSafetyError: the archive violates an extraction bound
        AttachmentError: not a ZIP archive, no ``level.dat`` inside, or entry
                         data that cannot be inflated (the partial worlds are removed)
    """
    fd, temp_name = tempfile.mkstemp(prefix=config.TEMP_ZIP_PREFIX, suffix=".zip", dir=temp_dir)
    temp_zip = Path(temp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        try:
            zf = zipfile.ZipFile(temp_zip)
        except zipfile.BadZipFile as e:
            raise AttachmentError("World download is not a valid ZIP archive") from e

        with zf:
            roots = scan_world_roots(zf)
            if not roots:
                raise AttachmentError(f"No world ({config.WORLD_MARKER}) found in archive")

            targets: List[WorldTarget] = []
            for root in roots:
                directory = ensure_unique_directory(base_dir, _world_name(root, default_name))
                directory.mkdir(parents=True)
                targets.append(WorldTarget(root, directory))

            total = 0
            try:
                for info in _real_entries(zf):
                    name = _entry_name(info)
                    target = match_world(name, targets)
                    if target is None:
                        logger.debug("Skipping archive entry outside any world: %s", name)
                        continue

                    relative = name[len(target.root):].lstrip("/") if target.root else name
                    if not relative:
                        continue
                    destination = (target.directory / relative).resolve()
                    if not destination.is_relative_to(target.directory.resolve()):
                        logger.warning("Rejecting archive entry outside extraction folder: %s", name)
                        raise ExtractionSafetyError("path_escape", name)

                    destination.parent.mkdir(parents=True, exist_ok=True)
                    total += _copy_entry(zf, info, destination, total)
            except _CORRUPT_ENTRY_ERRORS as e:
                logger.warning("World archive is corrupt (%s), removing partial worlds", e)
                for created in targets:
                    shutil.rmtree(created.directory, ignore_errors=True)
                raise AttachmentError("World archive is corrupt") from e

        primary = targets[0].directory
        logger.info("Extracted %d world(s), %d bytes, primary %s", len(targets), total, primary)
        return primary
    finally:
        temp_zip.unlink(missing_ok=True)


class AttachmentSaver:
    """
    Fetch attachments and save them into the download folders.

    Share one saver between every download of an application: its single
    I/O worker is what serializes the disk-touching steps.

    Usage:
        saver = AttachmentSaver(client, Path("schematics"), worlds_dir=Path("saves"))
        result = await saver.fetch_and_save(attachment)
        saver.close()
    """

    def __init__(
        self,
        client: ArchiveClient,
        download_dir: Union[str, Path],
        worlds_dir: Optional[Union[str, Path]] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.client = client
        self.download_dir = Path(download_dir).expanduser().absolute()
        self.worlds_dir = Path(worlds_dir).expanduser().absolute() if worlds_dir else self.download_dir
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="archive-mirror-io")
        self._own_executor = executor is None

    def close(self) -> None:
        """Stop the I/O worker once queued saves have finished."""
        if self._own_executor:
            self._executor.shutdown(wait=True)

    def __enter__(self) -> "AttachmentSaver":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    async def fetch_and_save(
        self,
        attachment: Attachment,
        progress: Optional[ProgressCallback] = None,
    ) -> SaveResult:
        """
        Download one attachment and persist it.

        The download always runs to completion; a caller that no longer
        cares (for example after switching sources) may ignore the result.

        Raises:
            AttachmentError: not downloadable, or not a usable world archive
            SourceError: network failure
            ExtractionSafetyError: unsafe world archive
            StorageError: local filesystem failure
        """
        if not attachment.is_downloadable:
            raise AttachmentError(f"Attachment {attachment.name!r} cannot be downloaded directly")

        data = await self.client.download(attachment.download_url, progress)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self.save, attachment, data)

    def save(self, attachment: Attachment, data: bytes) -> SaveResult:
        """
        Persist already-downloaded bytes (runs on the I/O worker).

        Callable directly from synchronous code that does its own serialization.
        """
        try:
            if attachment.is_world:
                return self._save_world(attachment, data)
            return self._save_file(attachment, data)
        except OSError as e:
            logger.error("Failed to save %s: %s", attachment.name, e)
            raise StorageError.from_os_error(e) from e

    def _save_world(self, attachment: Attachment, data: bytes) -> SaveResult:
        self.worlds_dir.mkdir(parents=True, exist_ok=True)
        world_name = sanitize_file_name(attachment.name, config.DEFAULT_WORLD_NAME)
        if world_name.lower().endswith(".zip"):
            world_name = world_name[:-4] or config.DEFAULT_WORLD_NAME
        primary = extract_worlds_from_zip(data, self.worlds_dir, world_name)
        return SaveResult(file_name=primary.name, path=primary, is_world_download=True)

    def _save_file(self, attachment: Attachment, data: bytes) -> SaveResult:
        self.download_dir.mkdir(parents=True, exist_ok=True)
        file_name = sanitize_file_name(attachment.name, config.DEFAULT_FILE_NAME)
        if "." not in file_name:
            file_name += config.DEFAULT_EXTENSION

        existing = find_identical_file(self.download_dir, file_name, data)
        if existing is not None:
            logger.info("Identical file already present: %s", existing)
            return SaveResult(
                file_name=existing.name,
                path=existing,
                is_world_download=False,
                checksum=sha256_file(existing),
            )

        output = ensure_unique_name(self.download_dir, file_name)
        output.write_bytes(data)
        logger.info("Saved %s (%d bytes)", output, len(data))
        return SaveResult(
            file_name=output.name,
            path=output,
            is_world_download=False,
            checksum=sha256_file(output),
        )

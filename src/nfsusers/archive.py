"""Seed archive extraction with ownership remapping."""

from __future__ import annotations

import gzip
import logging
import os
import shutil
import tarfile
import zlib
from typing import Callable

from nfsusers.errors import DecompressionError, ExtractionError, UnsupportedFormatError
from nfsusers.logging_schema import LogEvent

logger = logging.getLogger(__name__)

ARCHIVE_SUFFIX = "tar.gz"

Chown = Callable[[str, int, int], None]

_ENTRY_KINDS = {
    tarfile.SYMTYPE: "symlink",
    tarfile.LNKTYPE: "hardlink",
    tarfile.CHRTYPE: "character device",
    tarfile.BLKTYPE: "block device",
    tarfile.FIFOTYPE: "fifo",
}


def temp_tar_path(work_dir: str, owner: str) -> str:
    """Intermediate tar location, namespaced by owner."""
    return os.path.join(work_dir, f"tmp-{owner}.tar")


class ArchiveExtractor:
    """Unpacks a gzip-compressed tar into a directory owned by uid:gid.

    The archive is first decompressed to a temporary tar in the work
    directory, then unpacked entry by entry in stream order. Only
    directories and regular files are honored. The temporary tar is
    removed on every exit path.
    """

    def __init__(self, chown: Chown | None = None) -> None:
        self._chown = chown or os.chown

    def extract(
        self,
        archive_path: str,
        work_dir: str,
        target_dir: str,
        owner: str,
        uid: int,
        gid: int,
    ) -> None:
        if not archive_path.endswith(ARCHIVE_SUFFIX):
            raise UnsupportedFormatError(archive_path)

        tmp_tar = temp_tar_path(work_dir, owner)
        try:
            self._decompress(archive_path, tmp_tar, owner)
            count = self._unpack(tmp_tar, target_dir, owner, uid, gid)
        finally:
            try:
                os.remove(tmp_tar)
            except FileNotFoundError:
                pass

        logger.info(
            "Archive extracted",
            extra={
                "event": LogEvent.ARCHIVE_EXTRACTED,
                "archive": archive_path,
                "target": target_dir,
                "owner": owner,
                "entries": count,
            },
        )

    def _decompress(self, source: str, target: str, owner: str) -> None:
        try:
            with gzip.open(source, "rb") as src, open(target, "wb") as dst:
                shutil.copyfileobj(src, dst)
        except (OSError, EOFError, zlib.error) as e:
            raise DecompressionError(
                "Failed to decompress archive", owner=owner, path=source, cause=e
            ) from e

    def _unpack(self, source: str, target_dir: str, owner: str, uid: int, gid: int) -> int:
        root = os.path.realpath(target_dir)
        count = 0
        try:
            with tarfile.open(source, mode="r|") as archive:
                for member in archive:
                    self._unpack_member(archive, member, root, owner, uid, gid)
                    count += 1
        except (tarfile.TarError, OSError) as e:
            raise ExtractionError(
                "Failed to unpack archive", owner=owner, path=source, cause=e
            ) from e
        return count

    def _unpack_member(
        self,
        archive: tarfile.TarFile,
        member: tarfile.TarInfo,
        root: str,
        owner: str,
        uid: int,
        gid: int,
    ) -> None:
        path = os.path.normpath(os.path.join(root, member.name))
        if os.path.commonpath([root, path]) != root:
            raise ExtractionError(
                f"Archive entry '{member.name}' escapes the target directory",
                owner=owner,
                path=path,
            )

        mode = member.mode & 0o7777
        if member.isdir():
            self._make_dirs(root, path, mode, uid, gid)
            return

        if not member.isreg():
            kind = _ENTRY_KINDS.get(member.type, f"type {member.type!r}")
            raise ExtractionError(
                f"Unsupported archive entry '{member.name}' ({kind})",
                owner=owner,
                path=path,
            )

        fd = os.open(path, os.O_CREAT | os.O_TRUNC | os.O_WRONLY, mode)
        with os.fdopen(fd, "wb") as dst:
            src = archive.extractfile(member)
            if src is not None:
                shutil.copyfileobj(src, dst)
        self._chown(path, uid, gid)

    def _make_dirs(self, root: str, path: str, mode: int, uid: int, gid: int) -> None:
        """Create path below root one component at a time.

        Parents missing from the archive are created with the entry's mode
        and chowned like the entry itself.
        """
        current = root
        parts = os.path.relpath(path, root).split(os.sep)
        for part in parts[:-1]:
            current = os.path.join(current, part)
            if not os.path.isdir(current):
                os.mkdir(current, mode)
                self._chown(current, uid, gid)
        os.makedirs(path, mode=mode, exist_ok=True)
        self._chown(path, uid, gid)

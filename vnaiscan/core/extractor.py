"""Safe extraction of container filesystem archives.

The archive comes from the image under scan and is treated as hostile.
Only regular files and directories are materialized. Every entry is
classified before anything touches the disk:

- directories and regular files inside the destination are written;
- paths that escape the destination are skipped;
- symlinks, hardlinks, device nodes, FIFOs and unknown types are skipped.

Skipped entries are logged and never abort extraction. A corrupt or
truncated stream raises ExtractionError.
"""

import os
import posixpath
import stat
import tarfile
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Optional, Tuple

from ..utils.logging import get_logger
from .errors import ExtractionError

logger = get_logger(__name__)

# Upper bound on bytes written for a single archive entry
MAX_FILE_SIZE = 10 * 1024 * 1024 * 1024

# Final file permissions never exceed rwxr-xr-x (no setuid/setgid/sticky)
SAFE_MODE_MASK = 0o755
DIR_MODE = 0o755
INITIAL_FILE_MODE = 0o600

# Minimum owner bits the scanning tools need
FILE_READABLE_BITS = stat.S_IRUSR
DIR_TRAVERSABLE_BITS = stat.S_IRUSR | stat.S_IXUSR

COPY_CHUNK_SIZE = 1024 * 1024


class EntryAction(Enum):
    """How an archive entry is handled."""
    DIRECTORY = "directory"
    FILE = "file"
    REJECT_PATH = "reject-path"
    REJECT_TYPE = "reject-type"


@dataclass
class ExtractStats:
    """Counters for one extraction run."""
    files: int = 0
    directories: int = 0
    skipped: int = 0
    truncated: int = 0
    bytes_written: int = 0


class CorruptHeaderError(tarfile.TarError):
    """A header block is short or fails its checksum."""


class _StrictTarInfo(tarfile.TarInfo):
    """TarInfo that refuses truncated and malformed headers.

    tarfile ends iteration quietly when a header after the first one is
    short or has a bad checksum. Raising an error that is not a
    HeaderError makes it reach the caller instead.
    """

    @classmethod
    def fromtarfile(cls, archive):
        try:
            return super().fromtarfile(archive)
        except (tarfile.TruncatedHeaderError, tarfile.InvalidHeaderError) as e:
            raise CorruptHeaderError(f"malformed tar header: {e}") from e


def clean_member_path(name: str) -> Optional[str]:
    """
    Normalize an archive member name to a relative path.

    Leading slashes are stripped and ``.`` segments collapsed.

    Returns:
        The cleaned relative path (``"."`` for the root), or None if it
        still contains a ``..`` segment
    """
    stripped = name.lstrip("/")
    cleaned = posixpath.normpath(stripped) if stripped else "."
    if ".." in cleaned.split("/"):
        return None
    return cleaned


def resolve_member_path(name: str, root: str) -> Optional[str]:
    """
    Map an archive member name to an absolute path below root.

    Args:
        name: Member name as declared in the archive
        root: Absolute, normalized destination directory

    Returns:
        Absolute target path, or None if the member would escape root
    """
    cleaned = clean_member_path(name)
    if cleaned is None:
        return None

    target = os.path.normpath(os.path.join(root, cleaned))
    if target != root and not target.startswith(root + os.sep):
        return None
    return target


def classify_member(member: tarfile.TarInfo, root: str) -> Tuple[EntryAction, Optional[str]]:
    """
    Decide what to do with an archive entry.

    Returns:
        (action, target path); target is None for rejected entries
    """
    if member.isdir():
        action = EntryAction.DIRECTORY
    elif member.isreg():
        action = EntryAction.FILE
    else:
        # Symlinks, hardlinks, char/block devices, FIFOs and anything else
        return EntryAction.REJECT_TYPE, None

    target = resolve_member_path(member.name, root)
    if target is None:
        return EntryAction.REJECT_PATH, None
    if action == EntryAction.FILE and target == root:
        return EntryAction.REJECT_PATH, None
    return action, target


def _describe_rejected_type(member: tarfile.TarInfo) -> str:
    if member.issym():
        return f"symlink: {member.name} -> {member.linkname}"
    if member.islnk():
        return f"hardlink: {member.name} -> {member.linkname}"
    if member.ischr() or member.isblk():
        return f"device node: {member.name}"
    if member.isfifo():
        return f"FIFO: {member.name}"
    return f"unsupported entry type {member.type!r}: {member.name}"


def _write_file(
    archive: tarfile.TarFile,
    member: tarfile.TarInfo,
    target: str,
    max_file_size: int,
) -> int:
    """Copy one regular file entry to disk, capped at max_file_size bytes."""
    os.makedirs(os.path.dirname(target), mode=DIR_MODE, exist_ok=True)

    # Later entries for the same path replace earlier ones
    if os.path.lexists(target) and not os.path.isdir(target):
        os.unlink(target)

    fd = os.open(
        target,
        os.O_WRONLY | os.O_CREAT | os.O_TRUNC | os.O_NOFOLLOW,
        INITIAL_FILE_MODE,
    )
    written = 0
    with os.fdopen(fd, "wb") as out:
        source = archive.extractfile(member)
        remaining = min(member.size, max_file_size)
        while remaining > 0:
            chunk = source.read(min(COPY_CHUNK_SIZE, remaining))
            if not chunk:
                break
            out.write(chunk)
            written += len(chunk)
            remaining -= len(chunk)

    os.chmod(target, member.mode & SAFE_MODE_MASK)
    return written


def safe_extract(
    stream: BinaryIO,
    dest: str,
    max_file_size: int = MAX_FILE_SIZE,
) -> ExtractStats:
    """
    Extract a tar stream into dest, keeping only files and directories.

    The stream is read forward only, one entry at a time.

    Args:
        stream: Readable binary stream of a (possibly compressed) tar archive
        dest: Destination directory, created if missing
        max_file_size: Maximum bytes written per file; larger entries
            are truncated

    Returns:
        ExtractStats for the run

    Raises:
        ExtractionError: The archive is corrupt or truncated, or an
            allowed entry could not be written
    """
    root = os.path.abspath(dest)
    stats = ExtractStats()

    try:
        os.makedirs(root, mode=DIR_MODE, exist_ok=True)
        with tarfile.open(fileobj=stream, mode="r|*", tarinfo=_StrictTarInfo) as archive:
            for member in archive:
                action, target = classify_member(member, root)

                if action == EntryAction.REJECT_TYPE:
                    logger.warning(f"Skipping {_describe_rejected_type(member)}")
                    stats.skipped += 1
                elif action == EntryAction.REJECT_PATH:
                    logger.warning(f"Skipping dangerous path: {member.name}")
                    stats.skipped += 1
                elif action == EntryAction.DIRECTORY:
                    os.makedirs(target, mode=DIR_MODE, exist_ok=True)
                    stats.directories += 1
                else:
                    if member.size > max_file_size:
                        logger.warning(
                            f"Truncating {member.name}: {member.size} bytes "
                            f"exceeds limit of {max_file_size}"
                        )
                        stats.truncated += 1
                    stats.bytes_written += _write_file(archive, member, target, max_file_size)
                    stats.files += 1
    except (tarfile.TarError, EOFError) as e:
        raise ExtractionError(f"corrupt image archive: {e}") from e
    except OSError as e:
        raise ExtractionError(f"failed to extract image filesystem: {e}") from e

    logger.debug(
        f"Extracted {stats.files} files, {stats.directories} directories "
        f"({stats.bytes_written} bytes), skipped {stats.skipped} entries"
    )
    return stats


def _widen_mode(path: str, bits: int) -> None:
    try:
        st = os.lstat(path)
    except OSError as e:
        logger.debug(f"Cannot stat {path}: {e}")
        return
    if stat.S_ISLNK(st.st_mode):
        return

    mode = stat.S_IMODE(st.st_mode)
    if mode | bits != mode:
        try:
            os.chmod(path, mode | bits)
        except OSError as e:
            logger.debug(f"Cannot chmod {path}: {e}")


def make_readable(root: str) -> None:
    """
    Give the owner read access to every file and read/execute access to
    every directory under root.

    Container exports often carry restrictive modes (e.g. /root 0700) that
    would hide content from the scanning tools. Group and other bits are
    left untouched.
    """
    _widen_mode(root, DIR_TRAVERSABLE_BITS)
    # Top-down walk: subdirectories are fixed before os.walk descends
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames:
            _widen_mode(os.path.join(dirpath, name), DIR_TRAVERSABLE_BITS)
        for name in filenames:
            _widen_mode(os.path.join(dirpath, name), FILE_READABLE_BITS)

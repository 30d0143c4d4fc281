"""Shared fixtures: in-memory tar archives and fake analysis tools."""

from __future__ import annotations

import io
import sys
import tarfile
from typing import Iterable, Optional

import pytest

from vnaiscan.core.tools import ToolSpec


def file_entry(name: str, data: bytes = b"", mode: int = 0o644) -> tuple:
    info = tarfile.TarInfo(name)
    info.type = tarfile.REGTYPE
    info.size = len(data)
    info.mode = mode
    return info, data


def dir_entry(name: str, mode: int = 0o755) -> tuple:
    info = tarfile.TarInfo(name)
    info.type = tarfile.DIRTYPE
    info.mode = mode
    return info, None


def special_entry(name: str, type_: bytes, linkname: str = "") -> tuple:
    info = tarfile.TarInfo(name)
    info.type = type_
    info.linkname = linkname
    info.mode = 0o777
    return info, None


def build_tar(entries: Iterable[tuple]) -> bytes:
    """Serialize (TarInfo, data) pairs into an uncompressed tar archive."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w", format=tarfile.GNU_FORMAT) as tar:
        for info, data in entries:
            tar.addfile(info, io.BytesIO(data) if data is not None else None)
    return buf.getvalue()


def python_tool(
    name: str,
    code: str,
    *extra_args: str,
    output_name: Optional[str] = None,
    stdout_is_output: bool = False,
    parser=None,
) -> ToolSpec:
    """A ToolSpec that runs a Python snippet instead of a real scanner.

    The snippet receives extra_args followed by the output path in sys.argv.
    It must not contain braces, which are template placeholders.
    """
    args = ("-c", code, *extra_args)
    if not stdout_is_output:
        args = args + ("{output}",)
    return ToolSpec(
        name=name,
        binary=sys.executable,
        description=f"fake {name}",
        args=args,
        output_name=output_name or f"{name}.json",
        stdout_is_output=stdout_is_output,
        parser=parser,
    )


@pytest.fixture
def rootfs_tar() -> bytes:
    """A small, well-formed image filesystem."""
    return build_tar([
        dir_entry("etc/"),
        file_entry("etc/os-release", b"ID=alpine\n"),
        dir_entry("usr/bin/"),
        file_entry("usr/bin/tool", b"\x7fELF" + b"\0" * 60, mode=0o755),
    ])


@pytest.fixture
def rootfs_archive(tmp_path, rootfs_tar):
    """The small image filesystem saved as a tarball."""
    path = tmp_path / "rootfs.tar"
    path.write_bytes(rootfs_tar)
    return path

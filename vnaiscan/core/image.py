"""Image acquisition: obtain an image's filesystem and digest.

The image is never started. Its filesystem is exported as a tar stream and
fed straight into the safe extractor.
"""

import hashlib
import subprocess
import tempfile
import threading
from abc import ABC, abstractmethod
from typing import Optional

from ..utils.logging import get_logger
from ..utils.subprocess import run_command, terminate_process
from .errors import AcquisitionError, ExtractionError, ScanCancelledError
from .extractor import ExtractStats, safe_extract

logger = get_logger(__name__)

PULL_TIMEOUT = 30 * 60
DOCKER_TIMEOUT = 60
READ_CHUNK_SIZE = 1024 * 1024


class ImageSource(ABC):
    """Provides the filesystem of one image."""

    stats: Optional[ExtractStats] = None

    @abstractmethod
    def fetch(self, rootfs: str, cancel_event: Optional[threading.Event] = None) -> str:
        """
        Extract the image filesystem into rootfs.

        Returns:
            Resolved content digest of the image

        Raises:
            AcquisitionError: Image content could not be obtained
            ExtractionError: The exported archive is corrupt
        """


class DockerImageSource(ImageSource):
    """Pull, create (never start) and export an image with the docker CLI."""

    def __init__(self, image: str, platform: str, pull_timeout: float = PULL_TIMEOUT):
        self.image = image
        self.platform = platform
        self.pull_timeout = pull_timeout

    def _docker(self, *args: str, timeout: float = DOCKER_TIMEOUT) -> str:
        result = run_command(["docker", *args], timeout=timeout)
        if not result.success:
            detail = result.output or f"exit status {result.returncode}"
            raise AcquisitionError(f"docker {args[0]} failed: {detail}")
        return result.stdout.strip()

    def fetch(self, rootfs: str, cancel_event: Optional[threading.Event] = None) -> str:
        logger.debug(f"Pulling {self.image} ({self.platform})")
        self._docker("pull", "--platform", self.platform, self.image, timeout=self.pull_timeout)

        digest = self._docker("inspect", "--format", "{{.Id}}", self.image)
        container = self._docker("create", "--platform", self.platform, self.image)
        logger.debug(f"Created container {container[:12]} for export")

        try:
            self.stats = self._export(container, rootfs, cancel_event)
        finally:
            rm = run_command(["docker", "rm", container], timeout=DOCKER_TIMEOUT)
            if not rm.success:
                logger.warn_verbose(f"Failed to remove container {container[:12]}: {rm.output}")

        return digest

    def _export(
        self,
        container: str,
        rootfs: str,
        cancel_event: Optional[threading.Event],
    ) -> ExtractStats:
        with tempfile.TemporaryFile() as stderr:
            try:
                proc = subprocess.Popen(
                    ["docker", "export", container],
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=stderr,
                    start_new_session=True,
                )
            except OSError as e:
                raise AcquisitionError(f"docker export failed to start: {e}") from e

            done = threading.Event()

            def watch_cancel() -> None:
                while not done.wait(0.2):
                    if cancel_event.is_set():
                        terminate_process(proc)
                        return

            if cancel_event is not None:
                threading.Thread(target=watch_cancel, daemon=True).start()

            try:
                try:
                    stats = safe_extract(proc.stdout, rootfs)
                except ExtractionError as e:
                    if cancel_event is not None and cancel_event.is_set():
                        raise ScanCancelledError("scan cancelled during extraction") from e
                    raise
                # Drain the archive padding so docker can exit
                while proc.stdout.read(READ_CHUNK_SIZE):
                    pass
                proc.wait()
            finally:
                done.set()
                terminate_process(proc)
                proc.stdout.close()

            if proc.returncode != 0:
                stderr.seek(0)
                detail = stderr.read().decode(errors="replace").strip()
                raise AcquisitionError(f"docker export failed: {detail or proc.returncode}")

        return stats


class ArchiveImageSource(ImageSource):
    """A filesystem tarball saved with ``docker export``."""

    def __init__(self, path: str):
        self.path = path

    def _digest(self) -> str:
        sha = hashlib.sha256()
        with open(self.path, "rb") as f:
            for chunk in iter(lambda: f.read(READ_CHUNK_SIZE), b""):
                sha.update(chunk)
        return f"sha256:{sha.hexdigest()}"

    def fetch(self, rootfs: str, cancel_event: Optional[threading.Event] = None) -> str:
        try:
            digest = self._digest()
        except OSError as e:
            raise AcquisitionError(f"cannot read archive {self.path}: {e}") from e

        with open(self.path, "rb") as f:
            self.stats = safe_extract(f, rootfs)
        return digest

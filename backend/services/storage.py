"""
Staging storage for uploaded images.

Accepted uploads live here only while they are analysed. Each staged file is
removed by a deferred deletion task once its analysis settles; a periodic
sweep removes anything those tasks missed.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import aiofiles
import aiofiles.os

from core.config import settings
from models.upload import UploadedFile
from utils.file_utils import ensure_directory, staged_filename

logger = logging.getLogger(__name__)


class StagingArea:
    """Transient directory holding uploads awaiting analysis"""

    def __init__(self, upload_dir: Union[str, Path, None] = None):
        self.upload_dir = Path(upload_dir or settings.UPLOAD_DIR)
        self._last_timestamp = 0
        self._pending: Dict[asyncio.Task, Path] = {}
        self._sweeper: Optional[asyncio.Task] = None

    def _next_timestamp(self) -> int:
        """Millisecond timestamp, strictly increasing within this process"""
        now = int(time.time() * 1000)
        self._last_timestamp = max(now, self._last_timestamp + 1)
        return self._last_timestamp

    async def stage(self, content: bytes, original_name: str, mime_type: str) -> UploadedFile:
        """
        Write an accepted upload into the staging directory.

        Returns:
            The staged file descriptor
        """
        directory = ensure_directory(self.upload_dir)
        file_path = directory / staged_filename(self._next_timestamp(), original_name)

        async with aiofiles.open(file_path, "wb") as f:
            await f.write(content)

        logger.debug(f"Staged {original_name!r} as {file_path.name} ({len(content)} bytes)")
        return UploadedFile(
            original_name=original_name,
            staged_path=file_path,
            declared_mime_type=mime_type,
            size_bytes=len(content)
        )

    async def read(self, staged: UploadedFile) -> bytes:
        """Read a staged file back; raises FileNotFoundError if it is gone"""
        if not await aiofiles.os.path.exists(staged.staged_path):
            raise FileNotFoundError("Image file not found")
        async with aiofiles.open(staged.staged_path, "rb") as f:
            return await f.read()

    async def delete(self, file_path: Union[str, Path]) -> bool:
        """Delete a staged file; failures are logged, never raised"""
        try:
            await aiofiles.os.remove(file_path)
            logger.debug(f"Deleted staged file: {file_path}")
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error(f"Error cleaning up file {file_path}: {e}")
            return False

    def schedule_deletion(self, file_path: Union[str, Path], delay: float) -> asyncio.Task:
        """
        Delete ``file_path`` after ``delay`` seconds without awaiting it.

        The task is tracked so shutdown can flush it.
        """
        path = Path(file_path)

        async def _delete_later():
            await asyncio.sleep(max(delay, 0))
            await self.delete(path)

        task = asyncio.create_task(_delete_later())
        self._pending[task] = path
        task.add_done_callback(self._forget)
        return task

    def _forget(self, task: asyncio.Task) -> None:
        self._pending.pop(task, None)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Deferred cleanup failed: {task.exception()}")

    @property
    def pending_deletions(self) -> int:
        return len(self._pending)

    async def flush_pending(self) -> int:
        """Cancel outstanding deferred deletions and delete their files now"""
        pending = list(self._pending.items())
        for task, _ in pending:
            task.cancel()
        await asyncio.gather(*(task for task, _ in pending), return_exceptions=True)

        deleted = 0
        for _, path in pending:
            if await self.delete(path):
                deleted += 1
        if pending:
            logger.info(f"Flushed {len(pending)} pending cleanups, deleted {deleted} files")
        return deleted

    async def sweep_stale(self, max_age_seconds: float) -> Tuple[int, int]:
        """
        Delete staged files older than ``max_age_seconds``.

        Returns:
            Tuple of (files_deleted, bytes_freed)
        """
        if not self.upload_dir.is_dir():
            return 0, 0

        cutoff = time.time() - max_age_seconds
        files_deleted = 0
        bytes_freed = 0

        for file_path in self.upload_dir.iterdir():
            try:
                stat = file_path.stat()
            except FileNotFoundError:
                continue
            if not file_path.is_file() or stat.st_mtime >= cutoff:
                continue
            if await self.delete(file_path):
                files_deleted += 1
                bytes_freed += stat.st_size

        if files_deleted:
            logger.info(f"Sweep: deleted {files_deleted} stale staged files, "
                        f"freeing {bytes_freed / (1024*1024):.2f} MB")
        return files_deleted, bytes_freed

    async def _sweep_loop(self, interval: float, max_age_seconds: float):
        while True:
            try:
                await self.sweep_stale(max_age_seconds)
            except OSError as e:
                logger.error(f"Staging sweep failed: {e}")
            await asyncio.sleep(interval)

    def start_sweeper(
        self,
        interval: Optional[float] = None,
        max_age_seconds: Optional[float] = None
    ) -> None:
        """Start the periodic stale-file sweep (first pass runs immediately)"""
        if self._sweeper is not None and not self._sweeper.done():
            return
        self._sweeper = asyncio.create_task(self._sweep_loop(
            interval if interval is not None else settings.STAGING_SWEEP_INTERVAL_SECONDS,
            max_age_seconds if max_age_seconds is not None else settings.STAGING_MAX_AGE_SECONDS
        ))

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        await asyncio.gather(self._sweeper, return_exceptions=True)
        self._sweeper = None


# Singleton instance
staging_area = StagingArea()

"""
Concurrent digest pipeline for the dedup sweeper.

Three stages run at the same time on one event loop:
- Producer: walks the tree and queues one FileRecord per regular file
- Digest workers: ``worker_count`` tasks, each hashing one file at a time in a
  dedicated thread pool, forwarding finished records
- Aggregator: a single task appending finished records to the duplicate index

Shutdown is two ordered drain barriers. The digest queue is closed once the
walk ends and every worker is awaited; only then is the aggregator queue
closed and the aggregator awaited. The index is owned by the aggregator task
until both barriers have passed.
"""

from __future__ import annotations

import asyncio
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

import structlog

from config.exceptions import EnumerationError
from dedup.digest import compute_digest
from dedup.models import (
    DigestStage,
    DuplicateIndex,
    FileRecord,
    ScanConfig,
    ScanResult,
    ScanStats,
)
from dedup.resolver import ResolutionEngine
from dedup.walker import walk_tree

logger = structlog.get_logger(__name__)

# Queued once per consumer to close a queue
_CLOSED = None

PROGRESS_EVERY = 100


class DedupScanner:
    """
    Walk a tree, digest every file and group identical content.

    Features:
    - Bounded pool of digest workers fed by an unbounded queue
    - Single-writer duplicate index, no locking
    - Soft per-file failures (open, read, size mismatch) logged and counted
    - Fatal EnumerationError if the root cannot be walked
    """

    def __init__(
        self,
        config: ScanConfig,
        progress_callback: Optional[Callable[[ScanStats], None]] = None,
    ):
        """
        Initialize scanner.

        Args:
            config: Scan configuration
            progress_callback: Optional callback for progress updates
        """
        self.config = config
        self.progress_callback = progress_callback
        self.stats = ScanStats()
        self._index: DuplicateIndex = {}
        self._errors: list[str] = []
        self._start_time: float = 0.0

    @property
    def index(self) -> DuplicateIndex:
        """Digest -> records. Only meaningful once scan() has returned."""
        return self._index

    async def scan(self) -> ScanResult:
        """
        Run the pipeline to completion.

        Steps:
        1. Spawn the digest workers and the aggregator
        2. Walk the tree, queueing records as they are found
        3. Close the digest queue, wait for all workers (barrier 1)
        4. Close the aggregator queue, wait for the aggregator (barrier 2)
        5. Resolve duplicate groups from the drained index (oldest kept)

        Returns:
            ScanResult with duplicate groups

        Raises:
            EnumerationError: the root could not be walked
        """
        self._start_time = time.time()
        self._index = {}
        self._errors = []
        self.stats = ScanStats()

        logger.info(
            "dedup_scan_started",
            root_path=str(self.config.root_path),
            workers=self.config.worker_count,
            algorithm=self.config.hash_algorithm,
        )

        digest_queue: asyncio.Queue[Optional[FileRecord]] = asyncio.Queue()
        compare_queue: asyncio.Queue[Optional[FileRecord]] = asyncio.Queue()

        executor = ThreadPoolExecutor(
            max_workers=self.config.worker_count,
            thread_name_prefix="dedup-digest",
        )
        workers = [
            asyncio.create_task(self._digest_worker(digest_queue, compare_queue, executor))
            for _ in range(self.config.worker_count)
        ]
        aggregator = asyncio.create_task(self._aggregate(compare_queue))

        try:
            try:
                await self._enumerate(digest_queue)
            except EnumerationError as e:
                logger.error(
                    "dedup_walk_failed",
                    root_path=str(self.config.root_path),
                    error=str(e),
                )
                raise

            for _ in workers:
                digest_queue.put_nowait(_CLOSED)
            await asyncio.gather(*workers)
            if self.config.verbose:
                logger.info("dedup_digest_done", digested=self.stats.total_digested)

            compare_queue.put_nowait(_CLOSED)
            await aggregator
            if self.config.verbose:
                logger.info("dedup_compare_done", digests=len(self._index))
        finally:
            pending = [task for task in [*workers, aggregator] if not task.done()]
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            executor.shutdown(wait=True, cancel_futures=True)

        # Both barriers passed: the index now belongs to the resolution pass
        groups = ResolutionEngine().resolve_index(self._index)

        space_reclaimable = 0
        total_duplicates = 0
        for group in groups:
            for record in group.to_delete:
                space_reclaimable += record.size_bytes
                total_duplicates += 1

        result = ScanResult(
            root_path=self.config.root_path,
            total_scanned=self.stats.total_digested,
            duplicate_groups_count=len(groups),
            total_duplicates=total_duplicates,
            space_reclaimable_bytes=space_reclaimable,
            space_reclaimable_gb=round(space_reclaimable / (1024**3), 2),
            groups=groups,
            errors=list(self._errors),
        )

        logger.info(
            "dedup_scan_completed",
            total_enumerated=self.stats.total_enumerated,
            total_scanned=result.total_scanned,
            errors=self.stats.total_errors,
            duplicate_groups=result.duplicate_groups_count,
            total_duplicates=result.total_duplicates,
            space_reclaimable_gb=result.space_reclaimable_gb,
            elapsed_seconds=int(time.time() - self._start_time),
        )

        return result

    async def _enumerate(self, digest_queue: asyncio.Queue) -> None:
        """
        Feed the digest queue from the tree walk.

        Yields to the event loop every PROGRESS_EVERY records so workers can
        start on the first files while the walk continues.
        """
        for record in walk_tree(self.config.root_path):
            digest_queue.put_nowait(record)
            self.stats.total_enumerated += 1

            if self.stats.total_enumerated % PROGRESS_EVERY == 0:
                self.stats.current_directory = str(record.file_path.parent)
                await asyncio.sleep(0)

    async def _digest_worker(
        self,
        inbox: asyncio.Queue,
        outbox: asyncio.Queue,
        executor: ThreadPoolExecutor,
    ) -> None:
        """Digest records from ``inbox`` until it is closed, forward to ``outbox``."""
        loop = asyncio.get_running_loop()

        while True:
            record = await inbox.get()
            if record is _CLOSED:
                return

            if self.config.verbose:
                logger.info(
                    "dedup_digest_file",
                    file_path=str(record.file_path),
                    algorithm=self.config.hash_algorithm,
                )

            outcome = await loop.run_in_executor(
                executor,
                compute_digest,
                record.file_path,
                self.config.hash_algorithm,
                self.config.chunk_size,
            )

            if not outcome.ok:
                self.stats.total_errors += 1
                self._errors.append(f"{record.file_path}: {outcome.error}")
                event = (
                    "dedup_open_failed"
                    if outcome.stage == DigestStage.open
                    else "dedup_read_failed"
                )
                logger.warning(event, file_path=str(record.file_path), error=outcome.error)
                continue

            if outcome.bytes_read != record.size_bytes:
                # Usually the file changed under us; keep the digest we got
                self.stats.size_mismatches += 1
                logger.warning(
                    "dedup_size_mismatch",
                    file_path=str(record.file_path),
                    bytes_read=outcome.bytes_read,
                    size_bytes=record.size_bytes,
                )

            record.digest = outcome.digest
            self.stats.total_digested += 1
            outbox.put_nowait(record)

    async def _aggregate(self, inbox: asyncio.Queue) -> None:
        """Append finished records to the index until ``inbox`` is closed."""
        aggregated = 0

        while True:
            record = await inbox.get()
            if record is _CLOSED:
                return

            bucket = self._index.setdefault(record.digest, [])
            bucket.append(record)
            if len(bucket) == 2:
                self.stats.duplicate_groups += 1

            aggregated += 1
            if self.progress_callback and aggregated % PROGRESS_EVERY == 0:
                self.progress_callback(self.stats)


"""Batch orchestration: the resumable per-file processing loop."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Optional

from .codec import ImageCodec
from .config import ImgoptConfig
from .contracts import (
    BatchReport,
    ErrorDetail,
    FileRecord,
    FileStatus,
    ImageMetadata,
    Progress,
    RetryContext,
    RetryOutcome,
    RunFiles,
    RunState,
    RunStatus,
    utcnow,
)
from .detection import should_process
from .errorlog import ErrorLogger
from .errors import error_code, error_message
from .lfs import is_lfs_pointer, pull_lfs_file
from .outputs import discover_images, plan_outputs
from .persistence import CheckpointStore, UsableState
from .quality import needs_metadata, resolve
from .recovery import RetryCoordinator, Sleep

logger = logging.getLogger(__name__)

SKIP_UP_TO_DATE = "up-to-date"
SKIP_LFS_POINTER = "lfs-pointer"


class BatchOrchestrator:
    """Drive a batch through INIT -> RUNNING -> COMPLETE/PARTIAL/ABORTED.

    Files are processed one at a time in enumeration order. Progress is
    checkpointed every ``config.checkpoint_interval`` files and once at the
    end; a fully successful run clears the checkpoint.
    """

    def __init__(
        self,
        config: ImgoptConfig,
        codec: ImageCodec,
        store: CheckpointStore,
        error_logger: Optional[ErrorLogger] = None,
        *,
        force: bool = False,
        resume: bool = False,
        pull_lfs: bool = False,
        sleep: Optional[Sleep] = None,
    ) -> None:
        self.config = config
        self._codec = codec
        self._store = store
        self._error_logger = error_logger or ErrorLogger(config.error_log)
        self.force = force
        self.resume = resume
        self.pull_lfs = pull_lfs
        recovery = config.error_recovery
        retry_kwargs = {"sleep": sleep} if sleep is not None else {}
        self._retry = RetryCoordinator(
            max_retries=recovery.max_retries,
            retry_delay=recovery.retry_delay,
            exponential_backoff=recovery.exponential_backoff,
            error_logger=self._error_logger,
            **retry_kwargs,
        )
        self.status = RunStatus.INIT
        self.state = RunState(configuration=config.snapshot())
        self._records: Dict[str, FileRecord] = {}
        self._pending: List[str] = []
        self._total = 0

    # ------------------------------------------------------------------
    # INIT
    async def _initialize(self) -> None:
        input_root = Path(self.config.input_dir)
        enumerated = [str(p) for p in discover_images(input_root, self.config.recursive)]

        previous: Optional[RunState] = None
        if self.resume:
            loaded = await self._store.load()
            if isinstance(loaded, UsableState):
                previous = loaded.state
            else:
                logger.info(f"No resumable state ({loaded.kind}); starting fresh")

        if previous is None:
            candidates = enumerated
        else:
            self.state.started_at = previous.started_at
            self.state.configuration = previous.configuration
            carried = [
                r for r in previous.files.processed if r.status is FileStatus.SUCCESS
            ]
            retry_failed = [
                r.path for r in previous.files.processed if r.status is FileStatus.FAILED
            ]
            self._records = {r.path: r for r in carried}
            candidates = []
            seen = set(self._records)
            for path in [*previous.files.pending, *retry_failed, *enumerated]:
                if path not in seen:
                    seen.add(path)
                    candidates.append(path)
            logger.info(
                f"Resuming run from {previous.started_at.isoformat()}: "
                f"{len(carried)} done, {len(candidates)} to process"
            )

        self._pending = list(candidates)
        self._total = len(self._records) + len(self._pending)

    # ------------------------------------------------------------------
    # RUNNING
    def _snapshot(self) -> RunState:
        records = list(self._records.values())
        self.state.last_updated_at = utcnow()
        self.state.progress = Progress.from_records(self._total, records)
        self.state.files = RunFiles(processed=records, pending=list(self._pending))
        return self.state

    async def checkpoint(self) -> None:
        await self._store.save(self._snapshot())

    async def _process_file(self, path: str) -> FileRecord:
        input_root = self.config.input_dir
        metadata = None
        if needs_metadata(self.config.quality_rules):

            async def read_metadata() -> Optional[ImageMetadata]:
                return await asyncio.to_thread(self._codec.read_metadata, path)

            probed = await self._retry.run(
                read_metadata, RetryContext(file=path, operation="read-metadata")
            )
            if not probed.success:
                return self._failed(path, probed)
            metadata = probed.value
        quality = resolve(path, metadata, self.config.quality, self.config.quality_rules)
        targets = plan_outputs(path, input_root, self.config, quality)
        output_paths = [t.path for t in targets]

        pointer = is_lfs_pointer(path)
        if pointer and not self.pull_lfs:
            logger.warning(
                f"Skipping {path} (Git LFS pointer file - use --pull-lfs or run 'git lfs pull')"
            )
            return FileRecord(
                path=path, status=FileStatus.SUCCESS, skipped_reason=SKIP_LFS_POINTER
            )

        if not pointer and not should_process(
            path, output_paths, self.force, self.config.mtime_tolerance
        ):
            logger.info(f"Skipping {path} (already up to date)")
            return FileRecord(
                path=path,
                status=FileStatus.SUCCESS,
                outputs=output_paths,
                skipped_reason=SKIP_UP_TO_DATE,
            )

        async def operation() -> List[str]:
            if is_lfs_pointer(path):
                await asyncio.to_thread(pull_lfs_file, path)
            return await asyncio.to_thread(self._codec.encode, path, targets)

        outcome = await self._retry.run(operation, RetryContext(file=path))
        if outcome.success:
            logger.info(f"Optimized {path}")
            return FileRecord(
                path=path,
                status=FileStatus.SUCCESS,
                outputs=list(outcome.value or []),
                attempts=outcome.attempts,
            )

        return self._failed(path, outcome)

    def _failed(self, path: str, outcome: RetryOutcome) -> FileRecord:
        exc = outcome.error
        logger.error(f"Error processing {path}: {error_message(exc)}")
        return FileRecord(
            path=path,
            status=FileStatus.FAILED,
            error=ErrorDetail(message=error_message(exc), code=error_code(exc)),
            attempts=outcome.attempts,
        )

    async def run(self) -> BatchReport:
        """Process every candidate file and return the aggregate report.

        Raises:
            CheckpointError: the run state could not be saved.
        """
        await self._initialize()
        self.status = RunStatus.RUNNING
        continue_on_error = self.config.error_recovery.continue_on_error
        interval = self.config.checkpoint_interval
        attempted = 0
        had_failure = False

        if not self._pending:
            logger.info("No images to process")

        while self._pending:
            path = self._pending[0]
            record = await self._process_file(path)
            self._pending.pop(0)
            self._records[path] = record
            attempted += 1

            if record.status is FileStatus.FAILED:
                had_failure = True
                if not continue_on_error:
                    self.status = RunStatus.ABORTED
                    await self.checkpoint()
                    logger.error(f"Aborting run after failure on {path}")
                    return self.report()

            if attempted % interval == 0:
                await self.checkpoint()

        await self.checkpoint()
        if had_failure:
            self.status = RunStatus.PARTIAL
        else:
            self.status = RunStatus.COMPLETE
            await self._store.clear()
        return self.report()

    # ------------------------------------------------------------------
    # Reporting
    def report(self) -> BatchReport:
        records = list(self._records.values())
        progress = Progress.from_records(self._total, records)
        return BatchReport(
            status=self.status,
            total=progress.total,
            processed=progress.processed,
            succeeded=progress.succeeded,
            failed=progress.failed,
            skipped=sum(1 for r in records if r.skipped_reason == SKIP_UP_TO_DATE),
            lfs_pointers=sum(1 for r in records if r.skipped_reason == SKIP_LFS_POINTER),
            errors=list(self._error_logger.entries),
            error_log_path=str(self._error_logger.path) if self._error_logger.path else None,
            state_path=_store_location(self._store),
        )


async def run_batch(
    config: ImgoptConfig,
    codec: ImageCodec,
    store: CheckpointStore,
    error_logger: Optional[ErrorLogger] = None,
    **options,
) -> BatchReport:
    """Convenience wrapper building and running a ``BatchOrchestrator``."""
    orchestrator = BatchOrchestrator(config, codec, store, error_logger, **options)
    return await orchestrator.run()


def _store_location(store: CheckpointStore) -> Optional[str]:
    location = getattr(store, "path", None) or getattr(store, "db_path", None)
    return str(location) if location else None

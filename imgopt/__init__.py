"""imgopt: Resumable batch image optimization."""

from .config import ImgoptConfig, load_config
from .contracts import BatchReport, FileRecord, RunState, RunStatus
from .detection import should_process
from .errorlog import ErrorLogger
from .orchestrator import BatchOrchestrator, run_batch
from .persistence import get_checkpoint_store
from .quality import QualityRule, resolve
from .recovery import RetryCoordinator

__version__ = "0.1.0"
__all__ = [
    "BatchOrchestrator",
    "BatchReport",
    "ErrorLogger",
    "FileRecord",
    "ImgoptConfig",
    "QualityRule",
    "RetryCoordinator",
    "RunState",
    "RunStatus",
    "get_checkpoint_store",
    "load_config",
    "resolve",
    "run_batch",
    "should_process",
]

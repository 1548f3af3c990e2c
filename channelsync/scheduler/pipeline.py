"""Contract between the orchestrator and the fetch/download pipeline.

The pipeline does the actual channel work (metadata fetch, video listing,
downloads). The orchestrator only needs ``run`` and hands the pipeline a
``checkpoint`` callable to invoke between its own steps; the checkpoint
raises ``SyncCancelled`` once cancellation has been requested. Pipelines
must not write to the run log.
"""

from __future__ import annotations

import importlib
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterator, Protocol

from .run_log import SyncMode

logger = logging.getLogger(__name__)

Checkpoint = Callable[[], None]
Step = Callable[[], None]


class SyncPipeline(Protocol):
    """Anything the orchestrator can run for a channel."""

    def run(
        self,
        channel_id: str,
        credentials: str | None,
        mode: SyncMode,
        checkpoint: Checkpoint,
    ) -> None: ...


class StepPipeline(ABC):
    """Pipeline made of ordered steps with a checkpoint before each one.

    Subclasses yield ``(name, callable)`` pairs from ``steps``. A step is
    never interrupted; cancellation takes effect before the next one.
    """

    @abstractmethod
    def steps(
        self,
        channel_id: str,
        credentials: str | None,
        mode: SyncMode,
    ) -> Iterator[tuple[str, Step]]:
        """Yield the steps for one run."""

    def run(
        self,
        channel_id: str,
        credentials: str | None,
        mode: SyncMode,
        checkpoint: Checkpoint,
    ) -> None:
        for name, step in self.steps(channel_id, credentials, mode):
            checkpoint()
            logger.debug(f"[{channel_id}] {name}")
            step()


class DryRunPipeline(StepPipeline):
    """Pipeline that walks the sync phases without touching any remote API.

    Used when no real pipeline is configured, so schedules and the run log
    can be exercised end to end.
    """

    def steps(
        self,
        channel_id: str,
        credentials: str | None,
        mode: SyncMode,
    ) -> Iterator[tuple[str, Step]]:
        listing = "list all videos" if mode == SyncMode.FULL else "list new videos"
        for name in ("fetch channel metadata", listing, "download videos", "fetch comments"):
            yield name, self._log_step(channel_id, name)

    @staticmethod
    def _log_step(channel_id: str, name: str) -> Step:
        def step() -> None:
            logger.info(f"Dry run for {channel_id}: {name}")

        return step


def load_pipeline(path: str) -> Any:
    """Load a pipeline from a ``module:attribute`` path.

    Classes are instantiated without arguments; any other attribute is
    returned as is.

    Args:
        path: Dotted path such as ``"myapp.youtube:YouTubePipeline"``

    Returns:
        Pipeline instance

    Raises:
        ValueError: If the path is malformed or the attribute is missing
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(
            f"Invalid pipeline path: {path}. Expected 'module:attribute'."
        )

    module = importlib.import_module(module_name)
    try:
        target = getattr(module, attr)
    except AttributeError:
        raise ValueError(f"Pipeline {attr} not found in {module_name}")

    pipeline = target() if isinstance(target, type) else target
    if not callable(getattr(pipeline, "run", None)):
        raise ValueError(f"Pipeline {path} has no run() method")

    logger.info(f"Loaded sync pipeline {path}")
    return pipeline

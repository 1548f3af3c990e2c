"""Tests for the pipeline contract and loader."""

from __future__ import annotations

import pytest

from channelsync.scheduler import (
    DryRunPipeline,
    StepPipeline,
    SyncCancelled,
    SyncMode,
    load_pipeline,
)


class RecordingPipeline(StepPipeline):
    def __init__(self) -> None:
        self.executed: list[str] = []

    def steps(self, channel_id, credentials, mode):
        for name in ("metadata", "videos", "comments"):
            yield name, lambda name=name: self.executed.append(name)


class TestStepPipeline:
    """Checkpoint handling between steps."""

    def test_checkpoint_before_each_step(self) -> None:
        pipeline = RecordingPipeline()
        checks: list[int] = []

        pipeline.run(
            "chan-a",
            "key",
            SyncMode.FULL,
            lambda: checks.append(len(pipeline.executed)),
        )

        assert pipeline.executed == ["metadata", "videos", "comments"]
        assert checks == [0, 1, 2]

    def test_cancellation_stops_before_next_step(self) -> None:
        """A step in progress finishes; the next one never starts."""
        pipeline = RecordingPipeline()

        def checkpoint() -> None:
            if pipeline.executed:
                raise SyncCancelled("chan-a")

        with pytest.raises(SyncCancelled):
            pipeline.run("chan-a", "key", SyncMode.FULL, checkpoint)

        assert pipeline.executed == ["metadata"]


class TestDryRunPipeline:
    """Tests for the default pipeline."""

    def test_full_mode_lists_all_videos(self) -> None:
        names = [name for name, _ in DryRunPipeline().steps("chan-a", None, SyncMode.FULL)]

        assert names == [
            "fetch channel metadata",
            "list all videos",
            "download videos",
            "fetch comments",
        ]

    def test_incremental_mode_lists_new_videos(self) -> None:
        names = [
            name
            for name, _ in DryRunPipeline().steps("chan-a", None, SyncMode.INCREMENTAL)
        ]

        assert "list new videos" in names
        assert "list all videos" not in names

    def test_run_completes(self) -> None:
        calls: list[None] = []

        DryRunPipeline().run("chan-a", None, SyncMode.FULL, lambda: calls.append(None))

        assert len(calls) == 4


class TestLoadPipeline:
    """Tests for loading a pipeline from a dotted path."""

    def test_loads_and_instantiates_class(self) -> None:
        pipeline = load_pipeline("channelsync.scheduler.pipeline:DryRunPipeline")

        assert isinstance(pipeline, DryRunPipeline)

    def test_malformed_path(self) -> None:
        with pytest.raises(ValueError, match="Expected 'module:attribute'"):
            load_pipeline("channelsync.scheduler.pipeline.DryRunPipeline")

    def test_missing_attribute(self) -> None:
        with pytest.raises(ValueError, match="not found"):
            load_pipeline("channelsync.scheduler.pipeline:Missing")

    def test_attribute_without_run(self) -> None:
        with pytest.raises(ValueError, match="no run"):
            load_pipeline("channelsync.scheduler.pipeline:load_pipeline")

    def test_missing_module(self) -> None:
        with pytest.raises(ImportError):
            load_pipeline("channelsync.does_not_exist:Pipeline")

"""
Test single-file optimization and batch orchestration.
"""

import logging
import threading

import pytest

from vidopt.errors import (DirectoryListError, EncodeError, InputNotFoundError,
                           InsufficientDurationError, OptimizerError)
from vidopt.probe import MediaInfo
from vidopt.progress import ProgressContext


class TestOptimizeFile:
    """Test the single-file path."""

    def test_produces_one_result_per_tier(self, make_optimizer, create_test_files, fake_encoder):
        source_dir = create_test_files(["clip.mov"])
        optimizer = make_optimizer()

        results = optimizer.optimize_file(source_dir / "clip.mov")

        assert [r.tier_name for r in results] == ["1080p", "720p", "480p"]
        assert len(fake_encoder.commands) == 3
        for result in results:
            assert result.output_path.exists()
            assert result.output_path.parent == source_dir
            assert result.original_size_bytes == 10_000_000
            assert result.optimized_size_bytes == 4_000_000
            assert result.reduction_percent == pytest.approx(60.0)

    def test_output_names(self, make_optimizer, create_test_files):
        source_dir = create_test_files(["clip.mov"])

        results = make_optimizer(codec_profile="webm").optimize_file(source_dir / "clip.mov")

        assert [r.output_path.name for r in results] == [
            "clip_optimized_1080p.webm", "clip_optimized_720p.webm", "clip_optimized_480p.webm"]

    def test_single_quality_uses_plain_name(self, make_optimizer, create_test_files):
        source_dir = create_test_files(["clip.mov"])

        results = make_optimizer(multi_quality=False).optimize_file(source_dir / "clip.mov")

        assert [r.output_path.name for r in results] == ["clip_optimized.mp4"]

    def test_explicit_output_path(self, make_optimizer, create_test_files, tmp_path):
        source_dir = create_test_files(["clip.mov"])
        target = tmp_path / "web" / "out.mp4"

        results = make_optimizer(multi_quality=False).optimize_file(source_dir / "clip.mov",
                                                                    output_path=target)

        assert results[0].output_path == target
        assert target.exists()

    def test_explicit_output_path_with_tiers(self, make_optimizer, create_test_files, tmp_path):
        source_dir = create_test_files(["clip.mov"])
        target = tmp_path / "out.mp4"

        results = make_optimizer().optimize_file(source_dir / "clip.mov", output_path=target)

        assert [r.output_path.name for r in results] == ["out_1080p.mp4", "out_720p.mp4",
                                                         "out_480p.mp4"]

    def test_no_partial_files_left(self, make_optimizer, create_test_files):
        source_dir = create_test_files(["clip.mov"])

        make_optimizer().optimize_file(source_dir / "clip.mov")

        assert not list(source_dir.glob(".*partial*"))

    def test_commands_trim_to_clip_window(self, make_optimizer, create_test_files, fake_encoder):
        source_dir = create_test_files(["clip.mov"])

        make_optimizer(start_offset=10, duration=20).optimize_file(source_dir / "clip.mov")

        cmd = fake_encoder.commands[0]
        assert cmd[cmd.index("-ss") + 1] == "10"
        assert cmd[cmd.index("-t") + 1] == "20"

    def test_missing_input_raises(self, make_optimizer, tmp_path):
        with pytest.raises(InputNotFoundError):
            make_optimizer().optimize_file(tmp_path / "missing.mp4")

    def test_encoder_failure_raises(self, make_optimizer, create_test_files, fake_encoder):
        source_dir = create_test_files(["clip.mov"])
        fake_encoder.failing_inputs.add("clip.mov")

        with pytest.raises(EncodeError):
            make_optimizer().optimize_file(source_dir / "clip.mov")
        assert not list(source_dir.glob(".*partial*"))

    def test_empty_encoder_output_is_a_failure(self, make_optimizer, create_test_files,
                                               fake_encoder):
        source_dir = create_test_files(["clip.mov"])
        fake_encoder.output_size = 0

        with pytest.raises(EncodeError):
            make_optimizer().optimize_file(source_dir / "clip.mov")

    def test_output_may_be_larger_than_input(self, make_optimizer, create_test_files,
                                             fake_encoder):
        source_dir = create_test_files(["clip.mov"])
        fake_encoder.output_size = 12_500_000

        results = make_optimizer(multi_quality=False).optimize_file(source_dir / "clip.mov")

        assert results[0].reduction_percent == pytest.approx(-25.0)

    def test_overwriting_input_is_refused(self, make_optimizer, create_test_files):
        source_dir = create_test_files(["clip.mp4"])
        source = source_dir / "clip.mp4"

        with pytest.raises(OptimizerError):
            make_optimizer(multi_quality=False).optimize_file(source, output_path=source)

    def test_progress_context_receives_updates(self, make_optimizer, create_test_files):
        source_dir = create_test_files(["clip.mov"])
        updates = []

        class RecordingProgress:
            def update(self, task, description=None):
                updates.append(description)

            def advance(self, task, steps):
                pass

        ctx = ProgressContext(RecordingProgress(), 1)
        make_optimizer(multi_quality=False).optimize_file(source_dir / "clip.mov",
                                                          progress_ctx=ctx)

        assert any("33%" in u and "2.5x" in u for u in updates)


class TestClipWindow:
    """Test duration checks against the requested window."""

    def test_too_short_after_offset_is_fatal(self, make_optimizer, fake_prober, create_test_files):
        source_dir = create_test_files(["short.mov"])
        fake_prober.sources["short.mov"] = MediaInfo(width=1280, height=720,
                                                     duration_seconds=12.0, size_bytes=100)

        with pytest.raises(InsufficientDurationError):
            make_optimizer(start_offset=8).optimize_file(source_dir / "short.mov")

    def test_shorter_than_clip_shrinks_window(self, make_optimizer, fake_prober,
                                              create_test_files, fake_encoder):
        source_dir = create_test_files(["short.mov"])
        fake_prober.sources["short.mov"] = MediaInfo(width=1280, height=720,
                                                     duration_seconds=12.0, size_bytes=100)

        make_optimizer(start_offset=2, duration=15).optimize_file(source_dir / "short.mov")

        cmd = fake_encoder.commands[0]
        assert cmd[cmd.index("-t") + 1] == "10"

    def test_unknown_duration_keeps_requested_clip(self, make_optimizer, fake_prober,
                                                   create_test_files, fake_encoder):
        source_dir = create_test_files(["stream.mov"])
        fake_prober.sources["stream.mov"] = MediaInfo(width=1280, height=720, size_bytes=100)

        make_optimizer(duration=15).optimize_file(source_dir / "stream.mov")

        cmd = fake_encoder.commands[0]
        assert cmd[cmd.index("-t") + 1] == "15"


class TestBatch:
    """Test directory batch processing."""

    def test_finds_videos_case_insensitively(self, make_optimizer, create_test_files):
        source_dir = create_test_files(["a.MP4", "b.mov", "c.Mkv", "notes.txt", "d.avi"])
        (source_dir / "nested.mp4").mkdir()

        files = make_optimizer().find_video_files(source_dir)

        assert [f.name for f in files] == ["a.MP4", "b.mov", "c.Mkv", "d.avi"]

    def test_missing_directory_is_fatal(self, make_optimizer, tmp_path):
        with pytest.raises(DirectoryListError):
            make_optimizer().run_batch(tmp_path / "nope")

    def test_empty_directory_is_a_no_op(self, make_optimizer, tmp_path, fake_encoder):
        results = make_optimizer().run_batch(tmp_path)

        assert results == []
        assert fake_encoder.commands == []

    def test_missing_file_is_skipped(self, make_optimizer, create_test_files, caplog):
        """A bad file in the middle does not stop the batch."""
        source_dir = create_test_files(["one.mp4", "three.mp4"])
        files = [source_dir / "one.mp4", source_dir / "two.mp4", source_dir / "three.mp4"]
        optimizer = make_optimizer(multi_quality=False)

        with caplog.at_level(logging.ERROR, logger="vidopt"):
            results = optimizer.process_files(files)

        assert [r.input_path.name for r in results] == ["one.mp4", "three.mp4"]
        assert [f.name for f, _ in optimizer.failures] == ["two.mp4"]
        assert optimizer.last_summary.files_found == 3
        assert optimizer.last_summary.files_failed == 1
        errors = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert len(errors) == 1
        assert "two.mp4" in errors[0].getMessage()

    def test_short_file_is_skipped(self, make_optimizer, fake_prober, create_test_files,
                                   caplog):
        source_dir = create_test_files(["a.mp4", "short.mp4", "c.mp4"])
        fake_prober.sources["short.mp4"] = MediaInfo(width=1280, height=720,
                                                     duration_seconds=3.0, size_bytes=100)
        optimizer = make_optimizer(multi_quality=False)

        with caplog.at_level(logging.ERROR, logger="vidopt"):
            results = optimizer.run_batch(source_dir)

        assert [r.input_path.name for r in results] == ["a.mp4", "c.mp4"]
        assert [f.name for f, _ in optimizer.failures] == ["short.mp4"]
        assert "short.mp4" in caplog.text
        assert not (source_dir / "short_optimized.mp4").exists()

    def test_finished_tiers_are_kept_when_a_later_tier_fails(self, make_optimizer,
                                                              create_test_files, fake_encoder):
        source_dir = create_test_files(["clip.mov"])
        original_run = fake_encoder.run

        def fail_480p(command, on_progress=None):
            if "_480p" in command[-1]:
                raise EncodeError("ffmpeg exited with code 1", returncode=1)
            original_run(command, on_progress)

        fake_encoder.run = fail_480p
        optimizer = make_optimizer()

        results = optimizer.run_batch(source_dir)

        written = sorted(p.name for p in source_dir.glob("clip_optimized_*"))
        assert written == ["clip_optimized_1080p.mp4", "clip_optimized_720p.mp4"]
        assert [r.tier_name for r in results] == ["1080p", "720p"]
        assert optimizer.last_summary.outputs == len(written)
        assert optimizer.last_summary.total_optimized_bytes == 2 * fake_encoder.output_size
        assert [f.name for f, _ in optimizer.failures] == ["clip.mov"]

    def test_probe_and_encode_failures_are_skipped(self, make_optimizer, create_test_files,
                                                   fake_prober, fake_encoder, tmp_path):
        source_dir = create_test_files(["a.mp4", "b.mp4", "c.mp4"])
        fake_prober.failing.add("a.mp4")
        fake_encoder.failing_inputs.add("b.mp4")
        output_dir = tmp_path / "optimized"

        results = make_optimizer().run_batch(source_dir, output_dir)

        assert {r.input_path.name for r in results} == {"c.mp4"}
        assert len(results) == 3
        assert all(r.output_path.parent == output_dir for r in results)

    def test_summary_is_derived_from_results(self, make_optimizer, create_test_files):
        source_dir = create_test_files(["a.mp4", "b.mp4"])
        optimizer = make_optimizer(multi_quality=False)

        results = optimizer.run_batch(source_dir)
        summary = optimizer.last_summary

        assert summary.outputs == len(results) == 2
        assert summary.total_original_bytes == 20_000_000
        assert summary.total_optimized_bytes == 8_000_000
        assert summary.reduction_percent == pytest.approx(60.0)
        assert not summary.has_errors()

    def test_output_directory_is_created(self, make_optimizer, create_test_files, tmp_path):
        source_dir = create_test_files(["a.mp4"])
        output_dir = tmp_path / "deep" / "out"

        make_optimizer().run_batch(source_dir, output_dir)

        assert output_dir.is_dir()

    def test_cancel_stops_new_files(self, make_optimizer, create_test_files, fake_encoder):
        source_dir = create_test_files(["a.mp4", "b.mp4"])
        optimizer = make_optimizer(multi_quality=False)
        original_run = fake_encoder.run

        def run_then_cancel(command, on_progress=None):
            original_run(command, on_progress)
            optimizer.cancel()

        fake_encoder.run = run_then_cancel
        results = optimizer.run_batch(source_dir)

        assert [r.input_path.name for r in results] == ["a.mp4"]
        assert [f.name for f, reason in optimizer.failures] == ["b.mp4"]

    def test_shared_cancel_event(self, fake_prober, fake_encoder, create_test_files):
        from vidopt.config import OptimizerConfig
        from vidopt.core import VideoOptimizer

        event = threading.Event()
        event.set()
        optimizer = VideoOptimizer(OptimizerConfig(), prober=fake_prober, encoder=fake_encoder,
                                   cancel_event=event)
        source_dir = create_test_files(["a.mp4"])

        assert optimizer.run_batch(source_dir) == []
        assert fake_encoder.commands == []


class TestParallelTiers:
    """Test the bounded tier pool."""

    def test_results_keep_tier_order(self, make_optimizer, create_test_files, fake_encoder):
        source_dir = create_test_files(["clip.mov"])

        results = make_optimizer(tier_workers=3).optimize_file(source_dir / "clip.mov")

        assert [r.tier_name for r in results] == ["1080p", "720p", "480p"]
        assert len(fake_encoder.commands) == 3

    def test_failure_waits_for_other_tiers(self, make_optimizer, create_test_files, fake_encoder):
        source_dir = create_test_files(["clip.mov"])
        original_run = fake_encoder.run

        def fail_720p(command, on_progress=None):
            if "_720p" in command[-1]:
                raise EncodeError("ffmpeg exited with code 1", returncode=1)
            original_run(command, on_progress)

        fake_encoder.run = fail_720p
        completed = []

        with pytest.raises(EncodeError):
            make_optimizer(tier_workers=2).optimize_file(source_dir / "clip.mov",
                                                         completed=completed)
        assert (source_dir / "clip_optimized_1080p.mp4").exists()
        assert (source_dir / "clip_optimized_480p.mp4").exists()
        assert [r.tier_name for r in completed] == ["1080p", "480p"]

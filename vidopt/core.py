"""
Core video optimization functionality.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from rich.console import Console
from rich.table import Table

from .commands import EncodeJob, build_command
from .config import OptimizerConfig
from .constants import MIN_CLIP_SECONDS, PROFILE_EXTENSIONS, VIDEO_EXTENSIONS, get_console, get_logger
from .encoder import FFmpegEncoder
from .errors import DirectoryListError, EncodeError, InsufficientDurationError, OptimizerError
from .planner import QualityTier, select_tiers
from .probe import MediaInfo, probe
from .progress import ProgressContext
from .stats import BatchSummary, EncodeResult, format_size

Prober = Callable[[Path], MediaInfo]


class VideoOptimizer:
    """Trims, rescales and re-encodes videos for web delivery."""

    def __init__(self, config: OptimizerConfig, prober: Prober = probe,
                 encoder: Optional[FFmpegEncoder] = None,
                 cancel_event: Optional[threading.Event] = None,
                 console: Optional[Console] = None):
        self.config = config
        self.prober = prober
        self.encoder = encoder or FFmpegEncoder()
        self.cancel_event = cancel_event or threading.Event()
        self.console = console or get_console()
        self.logger = get_logger()
        self.failures: List[Tuple[Path, str]] = []
        self.last_summary: Optional[BatchSummary] = None

    def cancel(self) -> None:
        """Stop launching new encodes; running ones finish."""
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def output_path_for(self, input_path: Path, tier: QualityTier, multiple: bool,
                        output_path: Optional[Path] = None,
                        output_dir: Optional[Path] = None) -> Path:
        """Choose the output file for a tier, tagging the name when there are several tiers."""
        if output_path is not None:
            if not multiple:
                return output_path
            return output_path.with_name(f"{output_path.stem}_{tier.name}{output_path.suffix}")

        directory = output_dir or input_path.parent
        name = f"{input_path.stem}{self.config.output_suffix}"
        if multiple:
            name += f"_{tier.name}"
        return directory / f"{name}{PROFILE_EXTENSIONS[self.config.codec_profile]}"

    def plan_clip(self, input_path: Path, info: MediaInfo) -> Tuple[float, float]:
        """Return (start, duration) of the clip window for a source.

        Only the total duration is checked against the window; a damaged tail
        inside the window is not detected here.
        """
        start = self.config.start_offset
        duration = self.config.duration
        if info.duration_seconds <= 0:
            self.logger.warning(f"Unknown duration for {input_path.name}, requesting {duration:g}s")
            return start, duration

        available = info.duration_seconds - start
        if available < MIN_CLIP_SECONDS:
            raise InsufficientDurationError(input_path, max(0.0, available), MIN_CLIP_SECONDS)
        if available < duration:
            self.logger.warning(f"{input_path.name}: only {available:.1f}s available after "
                                f"{start:g}s, shortening clip from {duration:g}s")
            duration = available
        return start, duration

    def plan_jobs(self, input_path: Path, info: MediaInfo,
                  output_path: Optional[Path] = None,
                  output_dir: Optional[Path] = None) -> List[EncodeJob]:
        """Build one encode job per selected tier, highest resolution first."""
        start, duration = self.plan_clip(input_path, info)
        tiers = select_tiers(info.width, info.height, self.config.bitrate_ladder,
                             self.config.multi_quality)
        multiple = len(tiers) > 1
        jobs = []
        for tier in tiers:
            target = self.output_path_for(input_path, tier, multiple, output_path, output_dir)
            if target.resolve() == input_path.resolve():
                raise OptimizerError(f"Output would overwrite the input file: {input_path}")
            jobs.append(EncodeJob(input_path, target, tier, info, start, duration))
        return jobs

    def command_for(self, job: EncodeJob) -> List[str]:
        return build_command(job, self.config.codec_profile, self.config.crf,
                             self.config.audio_mode, self.config.framerate)

    def encode_job(self, job: EncodeJob,
                   progress_ctx: Optional[ProgressContext] = None) -> EncodeResult:
        """Encode one tier and measure the output."""
        output_path = job.output_path
        output_path.parent.mkdir(parents=True, exist_ok=True)

        # Encode to a hidden partial file to avoid leaving truncated outputs
        partial = output_path.with_name(f".{output_path.stem}.partial{output_path.suffix}")
        command = self.command_for(replace(job, output_path=partial))

        label = f"{job.input_path.name} [{job.tier.name}]"
        on_progress = None
        if progress_ctx:
            progress_ctx.update(f"Encoding: {label}")
            on_progress = progress_ctx.encode_callback(f"Encoding: {label}",
                                                       job.clip_duration_seconds)
        try:
            self.encoder.run(command, on_progress)
            if not partial.exists() or partial.stat().st_size == 0:
                raise EncodeError(f"Encoder produced no output for {label}")
            partial.replace(output_path)
        finally:
            if partial.exists():
                partial.unlink()

        optimized = self.prober(output_path)
        result = EncodeResult(
            tier_name=job.tier.name,
            input_path=job.input_path,
            output_path=output_path,
            original_size_bytes=job.source_info.size_bytes,
            optimized_size_bytes=optimized.size_bytes,
        )
        self.logger.info(f"{job.input_path} -> {output_path} ({result.reduction_percent:.1f}%)")
        self._report_result(result)
        return result

    def _encode_jobs(self, jobs: List[EncodeJob], progress_ctx: Optional[ProgressContext],
                     completed: List[EncodeResult]) -> None:
        """Run jobs sequentially, or on a bounded pool when tier_workers > 1.

        Finished tiers are appended to ``completed`` in tier order, also when
        a later tier fails and its error is re-raised.
        """
        workers = min(self.config.tier_workers, len(jobs))
        if workers <= 1:
            for job in jobs:
                if self.cancelled:
                    self.logger.warning(f"Cancelled before {job.tier.name} of {job.input_path.name}")
                    break
                completed.append(self.encode_job(job, progress_ctx))
            return

        def run(job: EncodeJob) -> Optional[EncodeResult]:
            if self.cancelled:
                return None
            return self.encode_job(job, progress_ctx)

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(run, job) for job in jobs]

        # Every job has settled once the executor exits
        completed.extend(f.result() for f in futures
                         if f.exception() is None and f.result() is not None)
        errors = [f.exception() for f in futures if f.exception() is not None]
        if errors:
            raise errors[0]

    def optimize_file(self, input_path: Path, output_path: Optional[Path] = None,
                      output_dir: Optional[Path] = None,
                      progress_ctx: Optional[ProgressContext] = None,
                      completed: Optional[List[EncodeResult]] = None) -> List[EncodeResult]:
        """Optimize one file into every selected tier.

        All failures propagate to the caller. Results of tiers written before
        a failure are still appended to ``completed`` when it is given.
        """
        results = [] if completed is None else completed
        first = len(results)
        input_path = Path(input_path)
        info = self.prober(input_path)
        self.console.print(f"Optimizing: [blue]{input_path.name}[/blue] "
                           f"({format_size(info.size_bytes)}, {info.duration_seconds:.1f}s)")
        jobs = self.plan_jobs(input_path, info, output_path, output_dir)
        self._encode_jobs(jobs, progress_ctx, results)
        return results[first:]

    def find_video_files(self, input_dir: Path) -> List[Path]:
        """List recognized video files directly inside a directory."""
        try:
            entries = list(Path(input_dir).iterdir())
        except OSError as e:
            raise DirectoryListError(f"Cannot list directory {input_dir}: {e}") from e
        return sorted(p for p in entries
                      if p.is_file() and p.suffix.lower() in VIDEO_EXTENSIONS)

    def process_files(self, files: List[Path], output_dir: Optional[Path] = None,
                      progress_ctx: Optional[ProgressContext] = None) -> List[EncodeResult]:
        """Optimize files one at a time; a failing file is logged and skipped."""
        self.failures = []
        results: List[EncodeResult] = []
        if output_dir is not None:
            Path(output_dir).mkdir(parents=True, exist_ok=True)

        for index, file_path in enumerate(files):
            if self.cancelled:
                self.logger.warning("Cancelled, skipping remaining files")
                self.failures.extend((f, "cancelled") for f in files[index:])
                break
            try:
                self.optimize_file(file_path, output_dir=output_dir,
                                   progress_ctx=progress_ctx, completed=results)
            except OptimizerError as e:
                self.logger.error(f"Error processing {file_path}: {e}")
                self.failures.append((file_path, str(e)))

            if progress_ctx:
                progress_ctx.advance()

        self.last_summary = BatchSummary.from_results(results, len(files), len(self.failures))
        return results

    def run_batch(self, input_dir: Path, output_dir: Optional[Path] = None,
                  progress_ctx: Optional[ProgressContext] = None) -> List[EncodeResult]:
        """Optimize every recognized video in a directory."""
        files = self.find_video_files(input_dir)
        if not files:
            self.console.print("[yellow]No video files found in directory[/yellow]")
            self.last_summary = BatchSummary.from_results([], 0)
            return []

        self.logger.info(f"Processing {len(files)} video files from {input_dir}")
        return self.process_files(files, output_dir, progress_ctx)

    def _report_result(self, result: EncodeResult) -> None:
        change = result.reduction_percent
        sizes = f"{format_size(result.original_size_bytes)} -> {format_size(result.optimized_size_bytes)}"
        if change < 0:
            self.console.print(f"  [yellow]{result.output_path.name}: {sizes} "
                               f"(grew {-change:.1f}%)[/yellow]")
        else:
            self.console.print(f"  [green]{result.output_path.name}: {sizes} "
                               f"(reduced {change:.1f}%)[/green]")

    def print_summary(self, summary: Optional[BatchSummary] = None) -> None:
        """Print batch summary."""
        summary = summary or self.last_summary
        if summary is None:
            return

        table = Table(title="Batch Summary")
        table.add_column("Category", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("Files Processed", f"{summary.files_succeeded}/{summary.files_found}")
        table.add_row("Outputs Written", str(summary.outputs))
        table.add_row("Original Size", format_size(summary.total_original_bytes))
        table.add_row("Optimized Size", format_size(summary.total_optimized_bytes))
        table.add_row("Reduction", f"{summary.reduction_percent:.1f}%")
        self.console.print(table)

        if summary.has_errors():
            self.console.print(f"\n[red]{summary.files_failed} file(s) failed:[/red]")
            for file_path, reason in self.failures:
                self.console.print(f"  [red]{file_path.name}: {reason}[/red]")

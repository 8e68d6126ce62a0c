"""
Command-line interface for vidopt.
"""

import argparse
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.progress import Progress

from . import constants
from .config import Config, OptimizerConfig, dump_config
from .constants import AUDIO_MODES, CODEC_PROFILES, PROGRAM, get_console, get_logger, setup_logging
from .core import VideoOptimizer
from .errors import ConfigError, OptimizerError
from .progress import ProgressContext
from .stats import BatchSummary

FFMPEG_INSTALL_HINT = """\
FFmpeg not found! Please install FFmpeg first:

  macOS:         brew install ffmpeg
  Ubuntu/Debian: sudo apt install ffmpeg
  Windows:       https://ffmpeg.org/download.html"""


def non_negative_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid number: {value}")
    if number < 0:
        raise argparse.ArgumentTypeError(f"Value must not be negative: {value}")
    return number


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid integer: {value}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"Value must be at least 1: {value}")
    return number


def create_parser(config: Config) -> argparse.ArgumentParser:
    """Create argument parser with help text showing the configured defaults."""
    try:
        defaults = config.build()
    except ConfigError:
        defaults = OptimizerConfig()

    parser = argparse.ArgumentParser(
        description="Trim, rescale and re-encode videos for web delivery",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  {PROGRAM} video.mp4
  {PROGRAM} video.mp4 optimized.mp4
  {PROGRAM} --batch ./videos ./optimized
  {PROGRAM} --config

Settings are read from {config.config_path} when present.
        """
    )

    parser.add_argument(
        "input", nargs="?",
        help="Input video file (or directory with --batch)"
    )
    parser.add_argument(
        "output", nargs="?",
        help="Output file (or directory with --batch); defaults to beside the input"
    )
    parser.add_argument(
        "--batch", "-b", action="store_true",
        help="Process all videos in the input directory"
    )
    parser.add_argument(
        "--single", action="store_true",
        help="Produce only the highest quality tier instead of all tiers"
    )
    parser.add_argument(
        "--start", "-s", type=non_negative_float, metavar="SECONDS",
        help=f"Skip this many seconds of the source (default: {defaults.start_offset:g})"
    )
    parser.add_argument(
        "--duration", "-t", type=non_negative_float, metavar="SECONDS",
        help=f"Length of the output clip (default: {defaults.duration:g})"
    )
    parser.add_argument(
        "--profile", "-p", choices=CODEC_PROFILES,
        help=f"Output codec profile (default: {defaults.codec_profile})"
    )
    parser.add_argument(
        "--audio", "-a", choices=AUDIO_MODES,
        help=f"Audio handling (default: {defaults.audio_mode})"
    )
    parser.add_argument(
        "--jobs", "-j", type=positive_int, metavar="N",
        help=f"Encode up to N tiers of a file in parallel (default: {defaults.tier_workers})"
    )
    parser.add_argument(
        "--config", action="store_true",
        help="Show the effective configuration and exit"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Enable verbose logging"
    )
    parser.add_argument(
        "--version", "-V", action="store_true",
        help=f"Display the version number of {PROGRAM} and exit"
    )

    return parser


def show_processing_plan(source: Path, dest: Optional[Path], batch: bool,
                         config: OptimizerConfig, console: Console) -> None:
    """Display the processing plan before execution."""
    console.print("\n[bold]Processing Plan:[/bold]")
    console.print(f"  {'Input Folder' if batch else 'Input File':<15}[blue]{source}[/blue]")
    console.print(f"  {'Output':<15}[blue]{dest or 'beside input'}[/blue]")
    console.print(f"  {'Profile':<15}[cyan]{config.codec_profile} (crf {config.crf})[/cyan]")
    console.print(f"  {'Clip':<15}[cyan]{config.duration:g}s from {config.start_offset:g}s[/cyan]")
    console.print(f"  {'Audio':<15}[cyan]{config.audio_mode}[/cyan]")
    console.print(f"  {'Tiers':<15}[cyan]{'all' if config.multi_quality else 'highest only'}[/cyan]")
    console.print()


def install_stop_handler(optimizer: VideoOptimizer):
    """Cancel remaining work on SIGTERM; returns the previous handler."""
    if threading.current_thread() is not threading.main_thread():
        return None

    def handle_stop(signum, frame):
        get_logger().warning("Stop requested, finishing the current encode")
        optimizer.cancel()

    return signal.signal(signal.SIGTERM, handle_stop)


def run(optimizer: VideoOptimizer, source: Path, dest: Optional[Path], batch: bool,
        console: Console) -> BatchSummary:
    """Run a single-file or batch optimization with a progress bar."""
    if batch:
        files = optimizer.find_video_files(source)
        if not files:
            console.print("[yellow]No video files found in directory[/yellow]")
            return BatchSummary.from_results([], 0)
        console.print(f"Found {len(files)} video files to process")
    else:
        files = [source]

    with Progress(console=console) as progress:
        task = progress.add_task("Processing videos...", total=len(files))
        progress_ctx = ProgressContext(progress, task)
        if batch:
            optimizer.process_files(files, dest, progress_ctx)
            summary = optimizer.last_summary
        else:
            results = optimizer.optimize_file(source, output_path=dest, progress_ctx=progress_ctx)
            progress_ctx.advance()
            summary = BatchSummary.from_results(results, 1)

    optimizer.print_summary(summary)
    return summary


def main(config_path: Optional[Path] = None, argv: Optional[List[str]] = None) -> int:
    """Main entry point.

    Args:
        config_path: Optional path to config file (for testing)
        argv: Optional argument list instead of sys.argv
    """
    config_file = Config(config_path=config_path)
    parser = create_parser(config_file)
    if argv is None:
        argv = sys.argv[1:]
    if not argv:
        parser.print_help()
        return 0
    args = parser.parse_args(argv)

    if args.version:
        from . import __version__, __copyright__
        if args.verbose:
            print(f"{PROGRAM} version {__version__} {__copyright__}")
            print(f"Config: {config_file.config_path}")
            return 0
        print(__version__)
        return 0

    setup_logging(args.verbose)
    console = get_console()

    try:
        config = config_file.build(
            duration=args.duration,
            start_offset=args.start,
            codec_profile=args.profile,
            audio_mode=args.audio,
            tier_workers=args.jobs,
            multi_quality=False if args.single else None,
        )
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    if args.config:
        print(dump_config(config), end="")
        return 0

    if not args.input:
        parser.error("An input file or directory is required")

    source = Path(args.input).expanduser().resolve()
    dest = Path(args.output).expanduser().resolve() if args.output else None

    if args.batch and not source.is_dir():
        console.print(f"[red]Error: Input directory does not exist: {source}[/red]")
        return 1
    if not args.batch and not source.is_file():
        console.print(f"[red]Error: Input file not found: {source}[/red]")
        return 1

    if not constants.ffmpeg_available() or not constants.ffprobe_available():
        console.print(f"[red]{FFMPEG_INSTALL_HINT}[/red]")
        return 1

    show_processing_plan(source, dest, args.batch, config, console)

    optimizer = VideoOptimizer(config, console=console)
    previous_handler = install_stop_handler(optimizer)
    try:
        summary = run(optimizer, source, dest, args.batch, console)
        if summary.has_errors():
            console.print(f"\n[green]✓ Processing completed[/green] "
                          f"[yellow]({summary.files_failed} files failed)[/yellow]")
        else:
            console.print("\n[green]✓ Processing completed successfully![/green]")
        return 0

    except KeyboardInterrupt:
        console.print("\n[red]Operation cancelled by user[/red]")
        return 1
    except OptimizerError as e:
        console.print(f"\n[red]Error: {e}[/red]")
        return 1
    except Exception as e:
        get_logger().debug("Unhandled error", exc_info=True)
        console.print(f"\n[red]Fatal error: {e}[/red]")
        return 1
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGTERM, previous_handler)


if __name__ == "__main__":
    sys.exit(main())

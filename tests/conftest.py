"""
pytest configuration and fixtures for vidopt tests.
"""

import io
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set

import pytest

from vidopt.config import OptimizerConfig
from vidopt.core import VideoOptimizer
from vidopt.errors import EncodeError, InputNotFoundError, ProbeError
from vidopt.probe import MediaInfo

HD_SOURCE = MediaInfo(width=1920, height=1080, duration_seconds=60.0, bitrate_kbps=8000.0,
                      codec_name="h264", size_bytes=10_000_000, frame_rate=30.0)


@dataclass
class CliResult:
    """Result from running CLI command."""
    exit_code: int
    output: str
    error: str


class FakeProber:
    """Stands in for ffprobe: sources come from a table, outputs are measured on disk."""

    def __init__(self, sources: Optional[Dict[str, MediaInfo]] = None,
                 default: MediaInfo = HD_SOURCE):
        self.sources = sources or {}
        self.default = default
        self.failing: Set[str] = set()
        self.calls: List[Path] = []

    def __call__(self, path: Path) -> MediaInfo:
        path = Path(path)
        self.calls.append(path)
        if not path.exists():
            raise InputNotFoundError(path)
        if path.name in self.failing:
            raise ProbeError(f"ffprobe exited with code 1 for {path}", path=path)
        if path.name in self.sources:
            return self.sources[path.name]
        if "_optimized" in path.name or path.name.startswith("out"):
            return MediaInfo(size_bytes=path.stat().st_size)
        return self.default


@dataclass
class FakeEncoder:
    """Stands in for ffmpeg: writes a fixed-size output to the last command token."""
    output_size: int = 4_000_000
    failing_inputs: Set[str] = field(default_factory=set)
    commands: List[List[str]] = field(default_factory=list)

    def run(self, command, on_progress=None) -> None:
        self.commands.append(list(command))
        input_path = Path(command[command.index("-i") + 1])
        if input_path.name in self.failing_inputs:
            raise EncodeError("ffmpeg exited with code 1", returncode=1, stderr_tail="boom")
        if on_progress is not None:
            from vidopt.progress import parse_progress_line
            on_progress(parse_progress_line("frame=10 time=00:00:05.00 bitrate= 900.1kbits/s speed=2.5x"))
        Path(command[-1]).write_bytes(b"\0" * self.output_size)


@pytest.fixture
def fake_prober():
    return FakeProber()


@pytest.fixture
def fake_encoder():
    return FakeEncoder()


@pytest.fixture
def make_optimizer(fake_prober, fake_encoder):
    """Build a VideoOptimizer wired to the fake collaborators."""

    def build(**config_values) -> VideoOptimizer:
        return VideoOptimizer(OptimizerConfig(**config_values), prober=fake_prober,
                              encoder=fake_encoder)

    return build


@pytest.fixture
def create_test_files(tmp_path):
    """Helper to create placeholder media files."""

    def create_files(names: List[str], content: bytes = b"\0" * 10_000_000) -> Path:
        test_dir = tmp_path / "test_files"
        test_dir.mkdir(exist_ok=True)
        for name in names:
            file_path = test_dir / name
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_bytes(content)
        return test_dir

    return create_files


@pytest.fixture
def test_config_path(tmp_path):
    """Isolated config path that does not exist yet."""
    return tmp_path / "config" / "config.yml"


@pytest.fixture
def cli_runner():
    """Create a CLI runner that captures output and uses a test config."""

    def run_cli(*args, config_path=None):
        """Run vidopt CLI with given arguments.

        Returns:
            CliResult with exit_code, output, and error
        """
        from vidopt.cli import main

        old_stdout = sys.stdout
        old_stderr = sys.stderr
        stdout = io.StringIO()
        stderr = io.StringIO()

        try:
            sys.stdout = stdout
            sys.stderr = stderr
            exit_code = main(config_path=config_path, argv=[str(a) for a in args])
            return CliResult(exit_code=exit_code, output=stdout.getvalue(),
                             error=stderr.getvalue())
        except SystemExit as e:
            # argparse exits on --help and usage errors
            return CliResult(
                exit_code=e.code if e.code is not None else 0,
                output=stdout.getvalue(),
                error=stderr.getvalue()
            )
        finally:
            sys.stdout = old_stdout
            sys.stderr = old_stderr

    return run_cli


@pytest.fixture
def mock_external_tools(monkeypatch):
    """Mock external tool availability for testing."""

    def mock_tools(tools_available: dict):
        def mock_check_tool(cmd: str, version_flag: str = "-h") -> bool:
            return tools_available.get(cmd, True)

        monkeypatch.setattr("vidopt.constants.check_tool_availability", mock_check_tool)

    return mock_tools

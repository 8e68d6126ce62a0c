"""
Result records and size statistics for optimization runs.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Sequence


def reduction_percent(original_bytes: int, optimized_bytes: int) -> float:
    """Percent saved relative to the original; negative when the output grew."""
    if original_bytes <= 0:
        return 0.0
    return (1 - optimized_bytes / original_bytes) * 100


@dataclass(frozen=True)
class EncodeResult:
    """Outcome of one successful tier encode."""
    tier_name: str
    input_path: Path
    output_path: Path
    original_size_bytes: int
    optimized_size_bytes: int

    @property
    def reduction_percent(self) -> float:
        return reduction_percent(self.original_size_bytes, self.optimized_size_bytes)


@dataclass(frozen=True)
class BatchSummary:
    """Totals derived from a finished batch."""
    files_found: int
    files_failed: int
    outputs: int
    total_original_bytes: int
    total_optimized_bytes: int

    @classmethod
    def from_results(cls, results: Sequence[EncodeResult], files_found: int,
                     files_failed: int = 0) -> "BatchSummary":
        """Aggregate results; every result pairs one output with its source size."""
        return cls(
            files_found=files_found,
            files_failed=files_failed,
            outputs=len(results),
            total_original_bytes=sum(r.original_size_bytes for r in results),
            total_optimized_bytes=sum(r.optimized_size_bytes for r in results),
        )

    @property
    def files_succeeded(self) -> int:
        return self.files_found - self.files_failed

    @property
    def reduction_percent(self) -> float:
        return reduction_percent(self.total_original_bytes, self.total_optimized_bytes)

    def has_errors(self) -> bool:
        """Check if any file failed."""
        return self.files_failed > 0


def format_size(size_bytes: int) -> str:
    """Human-readable size in MB or GB."""
    size_mb = size_bytes / (1024 * 1024)
    if size_mb > 1024:
        return f"{size_mb / 1024:.1f} GB"
    return f"{size_mb:.2f} MB"

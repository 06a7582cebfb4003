"""Job-wide progress aggregation."""
from dataclasses import dataclass

from ..models import UploadStats


@dataclass(frozen=True)
class JobProgress:
    """Snapshot produced for every accepted progress tick."""
    file_index: int
    total_files: int
    bytes_loaded: int
    bytes_total: int
    file_percent: float
    overall_percent: float


class ProgressAggregator:
    """
    Folds per-file ticks into job statistics.

    Only one file is in flight, so bytes of completed files are estimated as
    ``completed_files * average_file_size``. This drifts when file sizes vary;
    it is an approximation, not a byte ledger.
    """

    def __init__(self, stats: UploadStats):
        self._stats = stats

    @property
    def average_file_size(self) -> float:
        if self._stats.total_files <= 0:
            return 0.0
        return self._stats.total_bytes / self._stats.total_files

    def update(self, file_index: int, bytes_loaded: int, bytes_total: int) -> JobProgress:
        """Record a tick for ``file_index`` (1-based)."""
        completed_files = max(file_index - 1, 0)
        estimated = completed_files * self.average_file_size + bytes_loaded
        total_bytes = self._stats.total_bytes

        overall = (estimated / total_bytes * 100) if total_bytes > 0 else 0.0
        file_percent = (bytes_loaded / bytes_total * 100) if bytes_total > 0 else 0.0

        self._stats.uploaded_bytes = int(min(estimated, total_bytes))
        return JobProgress(
            file_index=file_index,
            total_files=self._stats.total_files,
            bytes_loaded=bytes_loaded,
            bytes_total=bytes_total,
            file_percent=min(max(file_percent, 0.0), 100.0),
            overall_percent=min(max(overall, 0.0), 100.0),
        )

    def file_settled(self, success: bool) -> None:
        if self._stats.settled_files >= self._stats.total_files:
            raise RuntimeError("All files of this job have already settled")
        if success:
            self._stats.uploaded_files += 1
        else:
            self._stats.failed_files += 1

    def snapshot(self) -> UploadStats:
        return self._stats.copy()

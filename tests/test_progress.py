"""Tests for job-wide progress aggregation."""
import pytest

from rapidup.models import UploadStats
from rapidup.orchestrator.progress import ProgressAggregator


def _aggregator(total_files, total_bytes):
    return ProgressAggregator(UploadStats(total_files=total_files, total_bytes=total_bytes))


def test_average_file_size():
    assert _aggregator(4, 100).average_file_size == 25.0
    assert _aggregator(0, 0).average_file_size == 0.0


def test_overall_percent_uses_average_for_completed_files():
    aggregator = _aggregator(2, 200)

    first = aggregator.update(1, 50, 100)
    assert first.file_percent == 50.0
    assert first.overall_percent == 25.0

    second = aggregator.update(2, 50, 100)
    assert second.overall_percent == 75.0


def test_approximation_with_uneven_sizes():
    # 10 + 90 bytes: after the small file, overall jumps to the average
    stats = UploadStats(total_files=2, total_bytes=100)
    aggregator = ProgressAggregator(stats)

    progress = aggregator.update(2, 0, 90)

    assert progress.overall_percent == 50.0
    assert stats.uploaded_bytes == 50


def test_overall_is_clamped():
    # last file larger than average can push the estimate past the total
    aggregator = _aggregator(2, 100)
    progress = aggregator.update(2, 90, 90)
    assert progress.overall_percent == 100.0


def test_zero_totals_do_not_divide():
    aggregator = _aggregator(1, 0)
    progress = aggregator.update(1, 0, 0)
    assert progress.overall_percent == 0.0
    assert progress.file_percent == 0.0


def test_file_settled_counts():
    stats = UploadStats(total_files=3, total_bytes=30)
    aggregator = ProgressAggregator(stats)

    aggregator.file_settled(True)
    aggregator.file_settled(False)
    aggregator.file_settled(True)

    assert stats.uploaded_files == 2
    assert stats.failed_files == 1
    assert stats.settled_files == 3


def test_cannot_settle_more_files_than_job_has():
    aggregator = _aggregator(1, 10)
    aggregator.file_settled(True)
    with pytest.raises(RuntimeError):
        aggregator.file_settled(False)


def test_snapshot_is_a_copy():
    stats = UploadStats(total_files=1, total_bytes=10)
    aggregator = ProgressAggregator(stats)

    snapshot = aggregator.snapshot()
    aggregator.file_settled(True)

    assert snapshot.uploaded_files == 0
    assert stats.uploaded_files == 1

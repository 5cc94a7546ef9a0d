"""
Unit tests for DedupScanner (digest worker pool + aggregator).

Tests:
- Duplicate grouping by digest, unique files in buckets of one
- Every digested record lands in exactly one bucket
- Soft failures: open/read failures skipped, size mismatch forwarded
- Groups resolved from the index, totals from deletion candidates
- Fatal enumeration failure, no task left running after a crash
- Progress callback and verbose logging
"""

import asyncio
import hashlib
from pathlib import Path
from unittest.mock import patch

import pytest
from structlog.testing import capture_logs

from config.exceptions import EnumerationError
from dedup.models import FileRecord, ScanConfig
from dedup.scanner import DedupScanner


def _scanner(root: Path, **kwargs) -> DedupScanner:
    kwargs.setdefault("worker_count", 4)
    return DedupScanner(config=ScanConfig(root_path=root, **kwargs))


class TestDuplicateGrouping:
    """Records are grouped purely by digest."""

    @pytest.mark.asyncio
    async def test_same_content_one_group(self, tmp_path, make_file):
        """3 files with same content -> 1 group."""
        for name in ["file1.txt", "file2.txt", "file3.txt"]:
            make_file(name, b"duplicate content here")

        result = await _scanner(tmp_path).scan()

        assert result.duplicate_groups_count == 1
        assert result.total_duplicates == 2
        assert len(result.groups[0].files) == 3
        assert result.groups[0].digest == hashlib.md5(b"duplicate content here").hexdigest()

    @pytest.mark.asyncio
    async def test_no_duplicates(self, tmp_path, make_file):
        """All unique files -> 0 groups, one bucket each."""
        for i in range(5):
            make_file(f"unique_{i}.txt", f"unique content {i}".encode())

        scanner = _scanner(tmp_path)
        result = await scanner.scan()

        assert result.duplicate_groups_count == 0
        assert result.total_duplicates == 0
        assert len(scanner.index) == 5
        assert all(len(bucket) == 1 for bucket in scanner.index.values())

    @pytest.mark.asyncio
    async def test_multiple_groups(self, tmp_path, make_file):
        """2 sets of duplicates -> 2 groups."""
        make_file("a1.txt", b"content A")
        make_file("a2.txt", b"content A")
        make_file("b1.txt", b"content B")
        make_file("sub/b2.txt", b"content B")
        make_file("sub/deeper/b3.txt", b"content B")
        make_file("unique.txt", b"unique content")

        result = await _scanner(tmp_path).scan()

        assert result.duplicate_groups_count == 2
        assert result.total_duplicates == 3  # (2-1) + (3-1)
        assert result.space_reclaimable_bytes == len(b"content A") + 2 * len(b"content B")

    @pytest.mark.asyncio
    async def test_every_record_in_exactly_one_bucket(self, tmp_path, make_file):
        for i in range(120):
            make_file(f"d{i % 7}/f{i}.bin", f"content {i % 13}".encode())

        scanner = _scanner(tmp_path, worker_count=8)
        result = await scanner.scan()

        indexed = [r.file_path for bucket in scanner.index.values() for r in bucket]
        assert len(indexed) == 120
        assert len(set(indexed)) == 120
        assert result.total_scanned == 120
        for digest, bucket in scanner.index.items():
            assert all(r.digest == digest for r in bucket)

    @pytest.mark.asyncio
    async def test_sha256_algorithm(self, tmp_path, make_file):
        make_file("a.txt", b"X")
        make_file("b.txt", b"X")

        result = await _scanner(tmp_path, hash_algorithm="sha256").scan()

        assert result.groups[0].digest == hashlib.sha256(b"X").hexdigest()

    @pytest.mark.asyncio
    async def test_scan_empty_directory(self, tmp_path):
        result = await _scanner(tmp_path).scan()

        assert result.total_scanned == 0
        assert result.duplicate_groups_count == 0

    @pytest.mark.asyncio
    async def test_scan_does_not_touch_files(self, tmp_path, make_file):
        a = make_file("a.txt", b"X")
        b = make_file("b.txt", b"X")

        await _scanner(tmp_path).scan()

        assert a.exists() and b.exists()


class TestSoftFailures:
    """Per-file errors skip one record, the run continues."""

    @pytest.mark.asyncio
    async def test_open_failure_excluded(self, tmp_path, make_file, fake_open):
        make_file("a.txt", b"X")
        make_file("b.txt", b"X")
        make_file("locked.txt", b"X")

        scanner = _scanner(tmp_path)
        with fake_open(open_fails={"locked.txt"}), capture_logs() as logs:
            result = await scanner.scan()

        grouped = {r.file_path.name for g in result.groups for r in g.files}
        assert grouped == {"a.txt", "b.txt"}
        assert scanner.stats.total_errors == 1
        assert len(result.errors) == 1
        assert any(e["event"] == "dedup_open_failed" for e in logs)

    @pytest.mark.asyncio
    async def test_read_failure_excluded(self, tmp_path, make_file, fake_open):
        make_file("a.txt", b"X")
        make_file("b.txt", b"X")
        make_file("flaky.txt", b"X")

        ctx = fake_open(read_fails={"flaky.txt"})
        with ctx, capture_logs() as logs:
            result = await _scanner(tmp_path).scan()

        assert result.groups[0].files and len(result.groups[0].files) == 2
        assert "flaky.txt" not in {r.file_path.name for r in result.groups[0].files}
        assert all(reader.closed for reader in ctx.readers)
        assert any(e["event"] == "dedup_read_failed" for e in logs)

    @pytest.mark.asyncio
    async def test_size_mismatch_still_forwarded(self, tmp_path, make_file):
        a = make_file("a.txt", b"X")
        b = make_file("b.txt", b"X")

        def _walk(root):
            yield FileRecord(file_path=a, size_bytes=1, mtime_ns=1)
            # Declared size disagrees with the content on disk
            yield FileRecord(file_path=b, size_bytes=99, mtime_ns=2)

        scanner = _scanner(tmp_path)
        with patch("dedup.scanner.walk_tree", side_effect=_walk), capture_logs() as logs:
            result = await scanner.scan()

        assert result.duplicate_groups_count == 1
        assert scanner.stats.size_mismatches == 1
        mismatch = [e for e in logs if e["event"] == "dedup_size_mismatch"]
        assert len(mismatch) == 1
        assert mismatch[0]["bytes_read"] == 1
        assert mismatch[0]["size_bytes"] == 99


class TestResolvedGroups:
    """Groups come back resolved from the drained index."""

    @pytest.mark.asyncio
    async def test_groups_keep_oldest(self, tmp_path, make_file):
        old = make_file("old.txt", b"same", mtime=1_700_000_000)
        new = make_file("new.txt", b"same", mtime=1_700_003_600)

        result = await _scanner(tmp_path).scan()

        [group] = result.groups
        assert group.group_id == 1
        assert group.keeper.file_path == old
        assert [r.file_path for r in group.to_delete] == [new]

    @pytest.mark.asyncio
    async def test_reclaimable_counts_deletion_candidates(self, tmp_path, make_file):
        older = make_file("older.txt", b"X")
        newer = make_file("newer.txt", b"X")

        def _walk(root):
            # Newer copy arrives first; it is still the one to delete
            yield FileRecord(file_path=newer, size_bytes=99, mtime_ns=2)
            yield FileRecord(file_path=older, size_bytes=1, mtime_ns=1)

        with patch("dedup.scanner.walk_tree", side_effect=_walk):
            result = await _scanner(tmp_path, worker_count=1).scan()

        assert result.total_duplicates == 1
        assert result.space_reclaimable_bytes == 99
        assert result.groups[0].keeper.file_path == older


class TestFatalEnumeration:
    """Root enumeration failure aborts the scan."""

    @pytest.mark.asyncio
    async def test_missing_root_raises(self, tmp_path):
        scanner = _scanner(tmp_path / "missing")

        with capture_logs() as logs:
            with pytest.raises(EnumerationError):
                await scanner.scan()

        assert any(e["event"] == "dedup_walk_failed" for e in logs)
        assert not any(e["event"] == "dedup_scan_completed" for e in logs)
        assert scanner.index == {}

    @pytest.mark.asyncio
    async def test_worker_crash_leaves_no_tasks_behind(self, tmp_path, make_file):
        make_file("a.txt", b"X")
        make_file("b.txt", b"X")

        with patch("dedup.scanner.compute_digest", side_effect=RuntimeError("boom")):
            with pytest.raises(RuntimeError):
                await _scanner(tmp_path).scan()

        leftover = [t for t in asyncio.all_tasks() if t is not asyncio.current_task()]
        assert leftover == []


class TestProgress:
    """Progress callback and verbose logs."""

    @pytest.mark.asyncio
    async def test_progress_callback_called(self, tmp_path, make_file):
        for i in range(250):
            make_file(f"file_{i}.txt", f"content {i}".encode())

        calls = []
        scanner = DedupScanner(
            config=ScanConfig(root_path=tmp_path, worker_count=8),
            progress_callback=lambda stats: calls.append(stats.total_digested),
        )
        await scanner.scan()

        assert len(calls) == 2
        assert scanner.stats.total_enumerated == 250

    @pytest.mark.asyncio
    async def test_verbose_logs_each_file(self, tmp_path, make_file):
        make_file("a.txt", b"a")
        make_file("b.txt", b"b")

        with capture_logs() as logs:
            await _scanner(tmp_path, verbose=True).scan()

        events = [e["event"] for e in logs]
        assert events.count("dedup_digest_file") == 2
        assert events.index("dedup_digest_done") < events.index("dedup_compare_done")

    @pytest.mark.asyncio
    async def test_quiet_by_default(self, tmp_path, make_file):
        make_file("a.txt", b"a")

        with capture_logs() as logs:
            await _scanner(tmp_path).scan()

        assert "dedup_digest_file" not in [e["event"] for e in logs]

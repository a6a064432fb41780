import os

import pytest

from conftest import make_log
from resource_tracker.cleanup import LogCleaner, format_size, main


@pytest.fixture
def log_dir(tmp_path):
    return tmp_path / 'reports'


@pytest.fixture
def cleaner(log_dir, report_logger):
    return LogCleaner(str(log_dir), logger=report_logger)


def report(n):
    return f"aws_resource_report_2024-01-{n:02d}_18-30-00.log"


def test_age_cleanup_removes_only_expired(cleaner, log_dir):
    expired = make_log(log_dir, report(1), 40)
    just_expired = make_log(log_dir, report(2), 31.5)
    boundary = make_log(log_dir, report(3), 30.5)
    fresh = make_log(log_dir, report(4), 2)

    deleted = cleaner.cleanup_by_age(30)

    assert deleted == [expired, just_expired]
    assert not os.path.exists(expired)
    assert not os.path.exists(just_expired)
    assert os.path.exists(boundary)
    assert os.path.exists(fresh)


def test_count_cleanup_removes_exactly_the_oldest_excess(cleaner, log_dir):
    paths = [make_log(log_dir, report(n), 10 - n) for n in range(1, 8)]

    deleted = cleaner.cleanup_by_count(5)

    assert deleted == paths[:2]
    assert sorted(cleaner.find_logs()) == sorted(paths[2:])


def test_count_cleanup_within_limit_removes_nothing(cleaner, log_dir, console):
    for n in range(1, 4):
        make_log(log_dir, report(n), n)

    assert cleaner.cleanup_by_count(3) == []
    assert len(cleaner.find_logs()) == 3
    assert "Current log file count (3) is within limit (3)" in console.getvalue()


def test_dry_run_never_deletes(cleaner, log_dir):
    paths = [make_log(log_dir, report(n), 100 + n) for n in range(1, 6)]

    would_delete = cleaner.run(retention_days=1, max_files=1, dry_run=True)

    assert sorted(would_delete) == sorted(paths)
    assert all(os.path.exists(p) for p in paths)


def test_dry_run_preview_matches_real_run(log_dir, report_logger):
    for n, age in enumerate([40, 20, 10, 5], start=1):
        make_log(log_dir, report(n), age)

    preview = LogCleaner(str(log_dir), logger=report_logger).run(30, 2, dry_run=True)
    deleted = LogCleaner(str(log_dir), logger=report_logger).run(30, 2)

    assert preview == deleted
    assert [os.path.basename(p) for p in deleted] == [report(1), report(2)]
    assert len(os.listdir(log_dir)) == 2


def test_only_report_files_are_considered(cleaner, log_dir):
    cron_log = make_log(log_dir, 'cron.log', 365)
    make_log(log_dir, report(1), 365)

    cleaner.run(retention_days=30, max_files=50)

    assert os.path.exists(cron_log)
    assert cleaner.find_logs() == []


def test_missing_directory_only_warns(tmp_path, report_logger, console):
    cleaner = LogCleaner(str(tmp_path / 'nowhere'), logger=report_logger)

    assert cleaner.run(30, 50) == []
    assert "[WARN]" in console.getvalue()
    assert "Log directory does not exist" in console.getvalue()


def test_log_stats(cleaner, log_dir):
    oldest = make_log(log_dir, report(1), 9, content="x" * 10)
    newest = make_log(log_dir, report(2), 1, content="y" * 20)

    stats = cleaner.get_log_stats()

    assert stats == {'total_files': 2, 'total_size': 30, 'oldest': oldest, 'newest': newest}


@pytest.mark.parametrize("size, expected", [
    (0, "0 B"),
    (512, "512.00 B"),
    (1536, "1.50 KB"),
    (5 * 1024 ** 3, "5.00 GB"),
])
def test_format_size(size, expected):
    assert format_size(size) == expected


@pytest.mark.parametrize("flag, value, message", [
    ('-d', '0', "Invalid retention days: 0 (must be positive integer)"),
    ('--days', 'abc', "Invalid retention days: abc (must be positive integer)"),
    ('-f', '-3', "Invalid max files: -3 (must be positive integer)"),
])
def test_cli_rejects_invalid_numbers(flag, value, message, capsys):
    with pytest.raises(SystemExit) as exc:
        main([flag, value])

    assert exc.value.code != 0
    assert message in capsys.readouterr().err


def test_cli_help_exits_zero(capsys):
    with pytest.raises(SystemExit) as exc:
        main(['--help'])

    assert exc.value.code == 0
    assert "--dry-run" in capsys.readouterr().out


def test_cli_dry_run(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    log_dir = tmp_path / 'logs'
    old = make_log(log_dir, report(1), 90)

    assert main(['--log-dir', str(log_dir), '--dry-run', '-d', '7']) == 0
    assert os.path.exists(old)

    assert main(['--log-dir', str(log_dir), '-d', '7']) == 0
    assert not os.path.exists(old)

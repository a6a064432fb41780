#!/usr/bin/env python3
"""
Log Cleanup for AWS Resource Tracker
Deletes old report files by age, then by count, to keep the log directory bounded.
"""

import argparse
import glob
import os
import sys
import time
from datetime import datetime

from . import REPORT_PATTERN
from .config import apply_overrides, load_config
from .exceptions import ConfigError, ValidationError
from .logger import setup_logging

SECONDS_PER_DAY = 86400


def format_size(size_bytes):
    """Convert bytes to human readable format"""
    if size_bytes == 0:
        return "0 B"

    size_names = ["B", "KB", "MB", "GB", "TB", "PB"]
    i = 0
    while size_bytes >= 1024 and i < len(size_names) - 1:
        size_bytes /= 1024.0
        i += 1

    return f"{size_bytes:.2f} {size_names[i]}"


def format_mtime(path):
    return datetime.fromtimestamp(os.path.getmtime(path)).strftime('%Y-%m-%d %H:%M:%S')


class LogCleaner:
    def __init__(self, log_dir, pattern=REPORT_PATTERN, logger=None, now=None):
        self.log_dir = log_dir
        self.pattern = pattern
        self.logger = logger or setup_logging(name='resource_tracker.cleanup')
        self.now = now

    def _now(self):
        return self.now if self.now is not None else time.time()

    def _check_log_dir(self):
        if not os.path.isdir(self.log_dir):
            self.logger.warning(f"Log directory does not exist: {self.log_dir}")
            return False
        return True

    def find_logs(self):
        """Report files in the log directory, oldest first"""
        paths = [p for p in glob.glob(os.path.join(self.log_dir, self.pattern)) if os.path.isfile(p)]
        return sorted(paths, key=lambda p: (os.path.getmtime(p), p))

    def age_in_days(self, path):
        """Whole days since last modification"""
        return int((self._now() - os.path.getmtime(path)) // SECONDS_PER_DAY)

    def _delete(self, paths, dry_run):
        if dry_run:
            self.logger.info("DRY RUN - Files that would be deleted:")
            for path in paths:
                self.logger.write(f"  {path} (modified: {format_mtime(path)})")
            return

        for path in paths:
            try:
                os.remove(path)
            except FileNotFoundError:
                self.logger.debug(f"Already removed: {path}")

    def cleanup_by_age(self, retention_days, dry_run=False):
        """Delete files older than ``retention_days`` whole days"""
        self.logger.info(f"Cleaning up log files older than {retention_days} days...")

        if not self._check_log_dir():
            return []

        expired = [p for p in self.find_logs() if self.age_in_days(p) > retention_days]

        if not expired:
            self.logger.info(f"No log files older than {retention_days} days found")
            return []

        self.logger.info(f"Found {len(expired)} log files older than {retention_days} days")
        self._delete(expired, dry_run)
        if not dry_run:
            self.logger.info(f"Deleted {len(expired)} old log files")
        return expired

    def cleanup_by_count(self, max_files, dry_run=False, exclude=()):
        """Keep only the newest ``max_files`` files; ``exclude`` lists files already accounted for"""
        self.logger.info(f"Keeping only the newest {max_files} log files...")

        if not self._check_log_dir():
            return []

        excluded = set(exclude)
        logs = [p for p in self.find_logs() if p not in excluded]
        total_files = len(logs)

        if total_files <= max_files:
            self.logger.info(f"Current log file count ({total_files}) is within limit ({max_files})")
            return []

        files_to_delete = total_files - max_files
        self.logger.info(f"Found {total_files} log files, need to delete {files_to_delete} oldest files")

        oldest = logs[:files_to_delete]
        self._delete(oldest, dry_run)
        if not dry_run:
            self.logger.info(f"Deleted {files_to_delete} old log files")
        return oldest

    def get_log_stats(self):
        logs = self.find_logs()
        if not logs:
            return {'total_files': 0, 'total_size': 0, 'oldest': None, 'newest': None}
        return {
            'total_files': len(logs),
            'total_size': sum(os.path.getsize(p) for p in logs),
            'oldest': logs[0],
            'newest': logs[-1],
        }

    def show_log_stats(self):
        if not self._check_log_dir():
            return None

        stats = self.get_log_stats()
        if not stats['total_files']:
            self.logger.info(f"No log files found in {self.log_dir}")
            return stats

        self.logger.write()
        self.logger.info("Log Statistics:")
        self.logger.write("===============")
        self.logger.write(f"Total log files: {stats['total_files']}")
        self.logger.write(f"Total size: {format_size(stats['total_size'])}")
        self.logger.write(f"Oldest log: {os.path.basename(stats['oldest'])} ({format_mtime(stats['oldest'])})")
        self.logger.write(f"Newest log: {os.path.basename(stats['newest'])} ({format_mtime(stats['newest'])})")
        return stats

    def run(self, retention_days, max_files, dry_run=False):
        """Age pass first, then count pass. Returns the deleted (or would-be-deleted) paths."""
        self.logger.info("Starting log cleanup...")
        if dry_run:
            self.logger.warning("DRY RUN MODE - No files will actually be deleted")

        self.show_log_stats()

        by_age = self.cleanup_by_age(retention_days, dry_run)
        by_count = self.cleanup_by_count(max_files, dry_run, exclude=by_age if dry_run else ())

        if not dry_run:
            self.show_log_stats()

        self.logger.info("Log cleanup completed")
        return by_age + by_count


def positive_int(label):
    """argparse type factory for positive integers with the tool's error message"""
    def parse(value):
        try:
            number = int(value)
        except ValueError:
            number = 0
        if number < 1:
            raise argparse.ArgumentTypeError(f"Invalid {label}: {value} (must be positive integer)")
        return number
    return parse


def validate_limits(retention_days, max_files):
    for label, value in (('retention days', retention_days), ('max files', max_files)):
        if not isinstance(value, int) or isinstance(value, bool) or value < 1:
            raise ValidationError(f"Invalid {label}: {value} (must be positive integer)")


def build_parser():
    parser = argparse.ArgumentParser(
        prog='aws-cleanup-logs',
        description='Clean up old AWS resource tracker log files.',
        epilog=(
            "examples:\n"
            "  aws-cleanup-logs              use default settings (30 days, 50 files max)\n"
            "  aws-cleanup-logs -d 7         keep only logs from last 7 days\n"
            "  aws-cleanup-logs -f 20        keep only newest 20 log files\n"
            "  aws-cleanup-logs -n           dry run - show what would be deleted"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('-d', '--days', type=positive_int('retention days'), metavar='DAYS',
                        help='Keep logs newer than DAYS (default: LOG_RETENTION_DAYS or 30)')
    parser.add_argument('-f', '--max-files', type=positive_int('max files'), metavar='NUM',
                        help='Keep at most NUM newest files (default: MAX_LOG_FILES or 50)')
    parser.add_argument('-n', '--dry-run', action='store_true',
                        help='Show what would be deleted without actually deleting')
    parser.add_argument('--log-dir', help='Directory holding the report files')
    parser.add_argument('-c', '--config', help='Path to config.conf')
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logger = setup_logging(name='resource_tracker.cleanup')

    try:
        config = load_config(args.config)
        apply_overrides(config, log_dir=args.log_dir, retention_days=args.days, max_files=args.max_files)
        validate_limits(config['retention_days'], config['max_files'])

        cleaner = LogCleaner(config['log_dir'], logger=logger)
        cleaner.run(config['retention_days'], config['max_files'], dry_run=args.dry_run)
    except KeyboardInterrupt:
        logger.error("Cleanup interrupted")
        return 1
    except (ConfigError, ValidationError) as e:
        logger.error(str(e))
        return 1
    finally:
        logger.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())

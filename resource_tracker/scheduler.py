#!/usr/bin/env python3
"""
Cron Setup for AWS Resource Tracker
Installs (or replaces) a single crontab entry that runs the tracker daily.
"""

import argparse
import os
import shlex
import shutil
import subprocess
import sys

from .config import apply_overrides, load_config, validate_cron_schedule
from .exceptions import PrerequisiteError, TrackerError
from .logger import setup_logging

TRACKER_MODULE = "resource_tracker.tracker"
TRACKER_MARKER = TRACKER_MODULE
CRON_COMMENT = "# AWS Resource Tracker - daily report"
CRON_LOG_NAME = "cron.log"


def build_tracker_command(log_dir, config_file=None, python=None):
    python = python or sys.executable
    parts = [python, '-m', TRACKER_MODULE, '--log-dir', log_dir]
    if config_file:
        parts += ['--config', config_file]
    return " ".join(shlex.quote(part) for part in parts)


def escape_percent(text):
    """cron turns an unescaped % into a newline"""
    return text.replace('%', '\\%')


def build_cron_entry(schedule, command, log_dir):
    cron_log = shlex.quote(os.path.join(log_dir, CRON_LOG_NAME))
    return f"{validate_cron_schedule(schedule)} {escape_percent(command)} >> {escape_percent(cron_log)} 2>&1"


def is_tracker_line(line):
    return TRACKER_MARKER in line or line.strip() == CRON_COMMENT


def remove_from_crontab(existing):
    """Crontab text without the tracker's comment and job lines"""
    kept = [line for line in existing.splitlines() if not is_tracker_line(line)]
    return "\n".join(kept) + "\n" if kept else ""


def merge_crontab(existing, entry):
    """Crontab text with exactly one tracker entry, appended at the end"""
    return remove_from_crontab(existing) + f"{CRON_COMMENT}\n{entry}\n"


def has_tracker_entry(existing):
    return any(TRACKER_MARKER in line and not line.lstrip().startswith('#')
               for line in existing.splitlines())


def describe_schedule(schedule):
    fields = schedule.split()
    minute, hour = fields[0], fields[1]
    if fields[2:] == ['*', '*', '*'] and minute.isdigit() and hour.isdigit():
        hour_value = int(hour)
        suffix = 'AM' if hour_value < 12 else 'PM'
        return f"Daily at {hour_value % 12 or 12}:{int(minute):02d} {suffix}"
    return f"Cron schedule '{schedule}'"


class CronScheduler:
    def __init__(self, config, logger=None):
        self.config = config
        self.logger = logger or setup_logging(name='resource_tracker.scheduler', timestamps=False)
        self.log_dir = config['log_dir']
        self.schedule = validate_cron_schedule(config['cron_schedule'])

    def check_prerequisites(self):
        self.logger.info("Checking prerequisites...")

        if shutil.which('crontab') is None:
            raise PrerequisiteError("crontab command not found. Please install cron package.")

        config_file = self.config.get('config_file')
        if config_file and not os.path.isfile(config_file):
            raise PrerequisiteError(f"Configuration file not found at: {config_file}")

        self.logger.info("Prerequisites check completed")

    def create_log_directory(self):
        if not os.path.isdir(self.log_dir):
            self.logger.info(f"Creating logs directory: {self.log_dir}")
            os.makedirs(self.log_dir, exist_ok=True)

    def read_crontab(self):
        """Current crontab, empty when the user has none"""
        result = subprocess.run(['crontab', '-l'], capture_output=True, text=True)
        if result.returncode != 0:
            if 'no crontab' in (result.stderr or '').lower():
                return ""
            raise TrackerError(f"Unable to read crontab: {(result.stderr or '').strip()}")
        return result.stdout

    def write_crontab(self, content):
        result = subprocess.run(['crontab', '-'], input=content, capture_output=True, text=True)
        if result.returncode != 0:
            raise TrackerError(f"crontab rejected the new schedule: {(result.stderr or '').strip()}")

    def tracker_command(self):
        return build_tracker_command(self.log_dir, self.config.get('config_file'))

    def install(self):
        self.logger.info("Setting up cron job...")

        existing = self.read_crontab()
        if has_tracker_entry(existing):
            self.logger.warning("Cron job for AWS resource tracker already exists. Updating...")

        command = self.tracker_command()
        entry = build_cron_entry(self.schedule, command, self.log_dir)
        self.write_crontab(merge_crontab(existing, entry))

        self.logger.info("Cron job installed successfully")
        self.logger.info(f"Schedule: {describe_schedule(self.schedule)}")
        self.logger.info(f"Command: {command}")
        self.logger.info(f"Logs: {os.path.join(self.log_dir, CRON_LOG_NAME)}")
        return entry

    def uninstall(self):
        existing = self.read_crontab()
        if not has_tracker_entry(existing):
            self.logger.warning("No cron job for AWS resource tracker found")
            return False

        self.write_crontab(remove_from_crontab(existing))
        self.logger.info("Cron job for AWS resource tracker removed")
        return True

    def show_status(self):
        self.logger.info("Current cron jobs:")
        self.logger.write("==================")
        current = self.read_crontab()
        if current.strip():
            self.logger.write(current.rstrip("\n"))
        else:
            self.logger.warning("No cron jobs found")
        self.logger.write()
        return current

    def run(self):
        self.logger.write("AWS Resource Tracker - Cron Setup")
        self.logger.write("==================================")
        self.logger.write()

        self.check_prerequisites()
        self.create_log_directory()
        self.install()
        self.show_status()

        self.logger.write()
        self.logger.info("Setup completed successfully!")
        self.logger.info(f"The AWS resource tracker will run: {describe_schedule(self.schedule)}")
        self.logger.info(f"To manually run the tracker: {self.tracker_command()}")
        self.logger.info("To view scheduled jobs: crontab -l")
        self.logger.info("To remove the job: aws-setup-cron --remove")


def build_parser():
    parser = argparse.ArgumentParser(
        prog='aws-setup-cron',
        description=(
            'Set up a cron job that runs the AWS resource tracker daily '
            '(default 6:30 PM). The tracker generates timestamped reports '
            'of AWS resource usage (S3, EC2, Lambda, IAM Users).'
        ),
    )
    parser.add_argument('--schedule', help='Five-field cron time specification (default: CRON_SCHEDULE or "30 18 * * *")')
    parser.add_argument('-c', '--config', help='Path to config.conf passed on to the tracker')
    parser.add_argument('--log-dir', help='Directory for report files and cron.log')
    action = parser.add_mutually_exclusive_group()
    action.add_argument('--remove', action='store_true', help='Remove the tracker cron job')
    action.add_argument('--show', action='store_true', help='Show current cron jobs only')
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logger = setup_logging(name='resource_tracker.scheduler', timestamps=False)

    try:
        config = load_config(args.config)
        apply_overrides(config, log_dir=args.log_dir, cron_schedule=args.schedule)
        scheduler = CronScheduler(config, logger=logger)

        if args.show:
            scheduler.check_prerequisites()
            scheduler.show_status()
        elif args.remove:
            scheduler.check_prerequisites()
            scheduler.uninstall()
        else:
            scheduler.run()
    except KeyboardInterrupt:
        logger.error("Setup interrupted")
        return 1
    except TrackerError as e:
        logger.error(str(e))
        return 1
    finally:
        logger.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())

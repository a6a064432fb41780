#!/usr/bin/env python3
"""
Preflight checks for AWS Resource Tracker
Verifies credentials, cron availability, configuration and the log directory
before the tracker is scheduled.
"""

import argparse
import os
import shutil
import sys

from .aws import check_credentials, create_session
from .config import apply_overrides, load_config
from .exceptions import ConfigError, PrerequisiteError
from .logger import setup_logging


def check_log_directory(log_dir):
    """True when log_dir exists (or can be created) and is writable"""
    try:
        os.makedirs(log_dir, exist_ok=True)
    except OSError:
        return False
    return os.access(log_dir, os.W_OK)


def ok(logger, message):
    logger.write(f"[OK] {message}", color='green')


def warn(logger, message):
    logger.write(f"[WARN] {message}", color='yellow')


def fail(logger, message):
    logger.write(f"[ERROR] {message}", color='red')


def run_checks(config, logger, session=None):
    """
    Write one [OK]/[WARN]/[ERROR] line per check.

    Returns True when the tracker can run: credentials work and the log
    directory is writable. Missing cron or config file only warn.
    """
    ready = True

    try:
        identity = check_credentials(session or create_session(config), config)
        ok(logger, f"AWS credentials are configured ({identity['Arn']})")
    except PrerequisiteError as e:
        fail(logger, str(e))
        ready = False

    if shutil.which('crontab'):
        ok(logger, "Cron is available")
    else:
        warn(logger, "crontab not found. Install cron to enable automated scheduling")

    if config.get('config_file'):
        ok(logger, f"Configuration file found: {config['config_file']}")
    else:
        warn(logger, "No config.conf found, using built-in defaults")

    if check_log_directory(config['log_dir']):
        ok(logger, f"Log directory is writable: {config['log_dir']}")
    else:
        fail(logger, f"Log directory is not writable: {config['log_dir']}")
        ready = False

    return ready


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog='aws-tracker-preflight',
        description='Check that the AWS resource tracker can run on this host.',
    )
    parser.add_argument('-c', '--config', help='Path to config.conf')
    parser.add_argument('--log-dir', help='Directory for report files')
    parser.add_argument('--profile', help='AWS profile name')
    args = parser.parse_args(argv)

    logger = setup_logging(name='resource_tracker.preflight', timestamps=False)
    try:
        config = load_config(args.config)
        apply_overrides(config, log_dir=args.log_dir, aws_profile=args.profile)
        ready = run_checks(config, logger)
    except ConfigError as e:
        logger.error(str(e))
        return 1
    finally:
        logger.close()

    return 0 if ready else 1


if __name__ == "__main__":
    sys.exit(main())

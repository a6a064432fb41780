"""
Configuration for the tracker tools.

Settings come from three layers: DEFAULT_CONFIG, an optional key-value file
(``config.conf``, shell style ``KEY=VALUE`` lines) and command-line flags.
"""

import configparser
import logging
import os
from typing import Any, Dict, Optional

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config.conf"

# Default configuration
DEFAULT_CONFIG = {
    'aws_region': None,
    'aws_profile': None,
    'log_dir': 'logs',
    'retention_days': 30,
    'max_files': 50,
    'track_s3': True,
    'track_ec2': True,
    'track_lambda': True,
    'track_iam': True,
    'calculate_bucket_sizes': True,
    'check_console_access': True,
    'cron_schedule': '30 18 * * *',
    'retry_attempts': 3,
    'config_file': None,
}

# config.conf key -> (config key, type)
FILE_KEYS = {
    'AWS_REGION': ('aws_region', str),
    'AWS_PROFILE': ('aws_profile', str),
    'LOG_DIR': ('log_dir', str),
    'LOG_RETENTION_DAYS': ('retention_days', int),
    'MAX_LOG_FILES': ('max_files', int),
    'TRACK_S3': ('track_s3', bool),
    'TRACK_EC2': ('track_ec2', bool),
    'TRACK_LAMBDA': ('track_lambda', bool),
    'TRACK_IAM': ('track_iam', bool),
    'CALCULATE_BUCKET_SIZES': ('calculate_bucket_sizes', bool),
    'CHECK_CONSOLE_ACCESS': ('check_console_access', bool),
    'CRON_SCHEDULE': ('cron_schedule', str),
    'RETRY_ATTEMPTS': ('retry_attempts', int),
}

_TRUE = {'true', 'yes', 'on', '1'}
_FALSE = {'false', 'no', 'off', '0'}
_SECTION = 'tracker'


def parse_bool(key: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigError(f"Invalid boolean for {key}: {value!r}")


def parse_positive_int(key: str, value) -> int:
    try:
        number = int(str(value).strip())
    except ValueError:
        raise ConfigError(f"Invalid {key}: {value} (must be positive integer)")
    if number < 1:
        raise ConfigError(f"Invalid {key}: {value} (must be positive integer)")
    return number


def validate_cron_schedule(schedule: str) -> str:
    """A cron time specification has exactly five whitespace separated fields"""
    fields = schedule.split()
    if len(fields) != 5:
        raise ConfigError(f"Invalid cron schedule: {schedule!r} (expected 5 fields)")
    return " ".join(fields)


def _strip_quotes(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        return value[1:-1]
    return value


def read_config_file(path: str) -> Dict[str, Any]:
    """Parse a KEY=VALUE file into config keys. Unknown keys are ignored."""
    parser = configparser.ConfigParser(
        interpolation=None,
        inline_comment_prefixes=('#',),
        delimiters=('=',),
        strict=False,
    )
    parser.optionxform = str

    try:
        with open(path, 'r', encoding='utf-8') as f:
            parser.read_string(f"[{_SECTION}]\n" + f.read(), source=path)
    except OSError as e:
        raise ConfigError(f"Cannot read configuration file {path}: {e}")
    except configparser.Error as e:
        raise ConfigError(f"Malformed configuration file {path}: {e}")

    values = {}
    for raw_key, raw_value in parser.items(_SECTION):
        key = raw_key.strip().upper()
        if key not in FILE_KEYS:
            logger.debug(f"Ignoring unknown configuration key {key}")
            continue

        name, kind = FILE_KEYS[key]
        value = _strip_quotes(raw_value)
        if kind is bool:
            values[name] = parse_bool(key, value)
        elif kind is int:
            values[name] = parse_positive_int(key, value)
        elif name == 'cron_schedule':
            values[name] = validate_cron_schedule(value)
        elif name == 'log_dir':
            if not value:
                raise ConfigError(f"{key} must not be empty")
            values[name] = value
        else:
            values[name] = value or None

    return values


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Build the effective configuration.

    An explicit ``path`` must exist. Without one, ``config.conf`` in the
    working directory is used when present. Relative log directories are
    resolved against the directory holding the config file.
    """
    config = DEFAULT_CONFIG.copy()
    base_dir = os.getcwd()

    if path is None and os.path.isfile(DEFAULT_CONFIG_FILE):
        path = DEFAULT_CONFIG_FILE

    if path is not None:
        if not os.path.isfile(path):
            raise ConfigError(f"Configuration file not found: {path}")
        path = os.path.abspath(path)
        config.update(read_config_file(path))
        config['config_file'] = path
        base_dir = os.path.dirname(path)

    config['log_dir'] = os.path.abspath(
        os.path.join(base_dir, os.path.expanduser(config['log_dir']))
    )
    return config


def apply_overrides(config: Dict[str, Any], **overrides) -> Dict[str, Any]:
    """Apply command-line values on top of the loaded configuration; None means unset"""
    for key, value in overrides.items():
        if value is None:
            continue
        if key == 'log_dir':
            value = os.path.abspath(os.path.expanduser(value))
        config[key] = value
    return config

import os

import pytest

from resource_tracker.config import DEFAULT_CONFIG, apply_overrides, load_config
from resource_tracker.exceptions import ConfigError

SAMPLE = """\
# AWS Resource Tracker configuration
AWS_REGION=eu-west-1
LOG_DIR=reports
LOG_RETENTION_DAYS=7
MAX_LOG_FILES="20"
TRACK_LAMBDA=false
CALCULATE_BUCKET_SIZES=no   # slow on big buckets
CRON_SCHEDULE="0 6 * * *"
NOTIFY_EMAIL=ops@example.com
"""


def write_config(tmp_path, text):
    path = tmp_path / 'config.conf'
    path.write_text(text)
    return str(path)


def test_defaults_without_config_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    config = load_config()

    assert config['retention_days'] == 30
    assert config['max_files'] == 50
    assert config['cron_schedule'] == '30 18 * * *'
    assert config['config_file'] is None
    assert config['log_dir'] == os.path.join(str(tmp_path), 'logs')


def test_reads_key_value_file(tmp_path):
    config = load_config(write_config(tmp_path, SAMPLE))

    assert config['aws_region'] == 'eu-west-1'
    assert config['retention_days'] == 7
    assert config['max_files'] == 20
    assert config['track_lambda'] is False
    assert config['track_s3'] is True
    assert config['calculate_bucket_sizes'] is False
    assert config['cron_schedule'] == '0 6 * * *'
    assert config['log_dir'] == os.path.join(str(tmp_path), 'reports')
    assert 'notify_email' not in config


def test_picks_up_config_in_working_directory(tmp_path, monkeypatch):
    write_config(tmp_path, "MAX_LOG_FILES=5\n")
    monkeypatch.chdir(tmp_path)

    config = load_config()

    assert config['max_files'] == 5
    assert config['config_file'] == os.path.join(str(tmp_path), 'config.conf')


@pytest.mark.parametrize("text, message", [
    ("LOG_RETENTION_DAYS=0\n", "must be positive integer"),
    ("MAX_LOG_FILES=many\n", "must be positive integer"),
    ("TRACK_S3=maybe\n", "Invalid boolean"),
    ("CRON_SCHEDULE=30 18 * *\n", "expected 5 fields"),
    ("LOG_DIR=\n", "LOG_DIR must not be empty"),
    ("LOG_DIR=\"\"\n", "LOG_DIR must not be empty"),
])
def test_invalid_values(tmp_path, text, message):
    with pytest.raises(ConfigError, match=message):
        load_config(write_config(tmp_path, text))


def test_missing_explicit_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(str(tmp_path / 'absent.conf'))


def test_overrides_skip_unset_values(tmp_path):
    config = DEFAULT_CONFIG.copy()

    apply_overrides(config, retention_days=None, max_files=3, log_dir=str(tmp_path / 'x'))

    assert config['retention_days'] == 30
    assert config['max_files'] == 3
    assert config['log_dir'] == str(tmp_path / 'x')


def test_empty_region_uses_default_chain(tmp_path):
    config = load_config(write_config(tmp_path, "AWS_REGION=\nAWS_PROFILE=\n"))

    assert config['aws_region'] is None
    assert config['aws_profile'] is None


def test_repeated_key_keeps_last_value(tmp_path):
    config = load_config(write_config(tmp_path, "MAX_LOG_FILES=5\nLOG_DIR=first\nMAX_LOG_FILES=9\n"))

    assert config['max_files'] == 9
    assert config['log_dir'] == os.path.join(str(tmp_path), 'first')

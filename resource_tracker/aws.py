"""boto3 session, client and credential helpers"""

import boto3
from botocore.config import Config
from botocore.exceptions import (
    ClientError,
    NoCredentialsError,
    PartialCredentialsError,
    ProfileNotFound,
)

from .exceptions import PrerequisiteError


def create_session(config):
    """Create a boto3 session from the configured profile and region"""
    try:
        return boto3.Session(
            profile_name=config.get('aws_profile'),
            region_name=config.get('aws_region'),
        )
    except ProfileNotFound as e:
        raise PrerequisiteError(f"AWS profile not found: {e}")


def client_config(config):
    """botocore client config; throttling retries are left to botocore's standard mode"""
    return Config(retries={'max_attempts': config.get('retry_attempts', 3), 'mode': 'standard'})


def check_credentials(session, config=None):
    """Return the caller identity, or raise PrerequisiteError when credentials are unusable"""
    try:
        sts = session.client('sts', config=client_config(config or {}))
        return sts.get_caller_identity()
    except (NoCredentialsError, PartialCredentialsError, ProfileNotFound):
        raise PrerequisiteError("AWS credentials not configured. Please run 'aws configure' first.")
    except ClientError as e:
        error_code = e.response['Error']['Code']
        raise PrerequisiteError(f"AWS credentials rejected ({error_code}). Please run 'aws configure' first.")

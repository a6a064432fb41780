"""Errors raised by the tracker tools. Each CLI turns them into exit status 1."""


class TrackerError(Exception):
    """Base class for all tracker errors"""


class ConfigError(TrackerError):
    """Bad or unreadable configuration file"""


class PrerequisiteError(TrackerError):
    """Missing binary, credentials or file required before a run"""


class ValidationError(TrackerError):
    """Invalid argument value"""

"""
Logging for the tracker tools.

Every line goes to the console and, when a log file is given, is appended to
that file. Tagged lines look like ``[INFO] 2024-01-15 18:30:00 - message``.
Raw lines (section headers, tables, summaries) are written untagged.
"""

import logging
import os
import sys
from datetime import datetime

from . import REPORT_PREFIX

DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
FILE_TIMESTAMP_FORMAT = '%Y-%m-%d_%H-%M-%S'
SEPARATOR = "=" * 48

COLORS = {
    'red': '\033[0;31m',
    'green': '\033[0;32m',
    'yellow': '\033[1;33m',
    'blue': '\033[0;34m',
}
NO_COLOR = '\033[0m'

LEVEL_COLORS = {
    'INFO': 'green',
    'WARN': 'yellow',
    'ERROR': 'red',
}


def colorize(text, color):
    return f"{COLORS[color]}{text}{NO_COLOR}"


class LevelTagFormatter(logging.Formatter):
    """Formats records as ``[TAG] timestamp - message``"""

    LEVEL_TAGS = {'WARNING': 'WARN', 'CRITICAL': 'ERROR'}

    def __init__(self, color=False, timestamps=True):
        super().__init__(datefmt=DATE_FORMAT)
        self.color = color
        self.timestamps = timestamps

    def format(self, record):
        tag = self.LEVEL_TAGS.get(record.levelname, record.levelname)
        tag_text = f"[{tag}]"
        if self.color and tag in LEVEL_COLORS:
            tag_text = colorize(tag_text, LEVEL_COLORS[tag])

        if self.timestamps:
            line = f"{tag_text} {self.formatTime(record, self.datefmt)} - {record.getMessage()}"
        else:
            line = f"{tag_text} {record.getMessage()}"

        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class RawFormatter(logging.Formatter):
    """Message only; optional colour from ``extra={'color': ...}``"""

    def __init__(self, color=False):
        super().__init__()
        self.color = color

    def format(self, record):
        message = record.getMessage()
        color = getattr(record, 'color', None)
        if self.color and color in COLORS:
            return "\n".join(colorize(line, color) if line else line
                             for line in message.split("\n"))
        return message


class ReportLogger:
    """Writes tagged and raw lines to the console and the report file"""

    def __init__(self, logger, raw_logger, log_file=None):
        self.logger = logger
        self.raw = raw_logger
        self.log_file = log_file

    def debug(self, message):
        self.logger.debug(message)

    def info(self, message):
        self.logger.info(message)

    def warning(self, message):
        self.logger.warning(message)

    def error(self, message, exc_info=False):
        self.logger.error(message, exc_info=exc_info)

    def write(self, text="", color=None):
        self.raw.info(text, extra={'color': color})

    def header(self, title):
        self.write(f"\n{SEPARATOR}", color='blue')
        self.write(f" {title}", color='blue')
        self.write(SEPARATOR, color='blue')

    def block(self, title, lines):
        """Titled block with an underline, e.g. ``S3 Buckets:`` / ``===========``"""
        self.write(f"\n{title}")
        self.write("=" * len(title))
        for line in lines:
            self.write(line)

    def close(self):
        for log in (self.logger, self.raw):
            for handler in list(log.handlers):
                handler.close()
                log.removeHandler(handler)


def report_path(log_dir, now=None):
    """Path of a new timestamped report file inside ``log_dir``"""
    now = now or datetime.now()
    return os.path.join(log_dir, f"{REPORT_PREFIX}{now.strftime(FILE_TIMESTAMP_FORMAT)}.log")


def _use_color(stream):
    return hasattr(stream, 'isatty') and stream.isatty() and 'NO_COLOR' not in os.environ


def setup_logging(name='resource_tracker', log_file=None, stream=None,
                  level=logging.INFO, timestamps=True):
    """
    Setup logging configuration.

    Calling this again for the same ``name`` replaces the previous handlers.
    The log file's directory is created when missing.
    """
    stream = stream or sys.stdout
    color = _use_color(stream)

    logger = logging.getLogger(name)
    raw_logger = logging.getLogger(f"{name}.raw")

    for log in (logger, raw_logger):
        for handler in list(log.handlers):
            handler.close()
            log.removeHandler(handler)
        log.setLevel(level)
        log.propagate = False

    console = logging.StreamHandler(stream)
    console.setFormatter(LevelTagFormatter(color=color, timestamps=timestamps))
    logger.addHandler(console)

    raw_console = logging.StreamHandler(stream)
    raw_console.setFormatter(RawFormatter(color=color))
    raw_logger.addHandler(raw_console)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setFormatter(LevelTagFormatter(timestamps=timestamps))
        logger.addHandler(file_handler)

        raw_file = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        raw_file.setFormatter(RawFormatter())
        raw_logger.addHandler(raw_file)

    return ReportLogger(logger, raw_logger, log_file)

"""
AWS Resource Tracker
Daily S3 / EC2 / Lambda / IAM usage reports, log retention and cron scheduling
"""

__version__ = "1.0.0"

REPORT_PREFIX = "aws_resource_report_"
REPORT_PATTERN = f"{REPORT_PREFIX}*.log"

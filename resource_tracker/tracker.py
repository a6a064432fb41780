#!/usr/bin/env python3
"""
AWS Resource Tracker
Tracks S3 buckets, EC2 instances, Lambda functions and IAM users and writes a
timestamped report to the log directory.
"""

import argparse
import csv
import json
import sys
from collections import Counter
from datetime import datetime, timezone

from botocore.exceptions import BotoCoreError, ClientError
from tabulate import tabulate

from .aws import check_credentials, client_config, create_session
from .config import apply_overrides, load_config
from .exceptions import ConfigError, TrackerError
from .logger import colorize, report_path, setup_logging

RESOURCE_LABELS = {
    's3': 'S3 Buckets',
    'ec2': 'EC2 Instances',
    'lambda': 'Lambda Functions',
    'iam': 'IAM Users',
}

RESOURCE_HEADERS = {
    's3': ['Name', 'CreationDate'],
    'ec2': ['InstanceId', 'InstanceType', 'State', 'LaunchTime', 'Name'],
    'lambda': ['FunctionName', 'Runtime', 'LastModified', 'CodeSize', 'Timeout'],
    'iam': ['UserName', 'CreateDate', 'PasswordLastUsed'],
}


def format_timestamp(value):
    if isinstance(value, datetime):
        return value.strftime('%Y-%m-%dT%H:%M:%S')
    return value


class ResourceTracker:
    def __init__(self, config, session=None, logger=None):
        self.config = config
        self.session = session or create_session(config)
        self.logger = logger or setup_logging(log_file=report_path(config['log_dir']))
        self.boto_config = client_config(config)
        self.identity = None
        self.counts = {}
        self.inventory = {}
        self.details = {}

    def _client(self, service):
        return self.session.client(service, config=self.boto_config)

    def _record(self, key, rows):
        self.counts[key] = len(rows)
        self.inventory[key] = rows

    def _table(self, key, rows):
        return tabulate(rows, headers=RESOURCE_HEADERS[key], tablefmt='grid')

    def check_prerequisites(self):
        """Verify credentials before any listing call"""
        self.identity = check_credentials(self.session, self.config)
        self.logger.info("AWS credentials are configured and accessible")
        self.logger.info(f"Account: {self.identity['Account']} ({self.identity['Arn']})")

    def get_bucket_size(self, s3, bucket_name):
        """Sum of object sizes in a bucket; 0 when the bucket cannot be listed"""
        total = 0
        try:
            paginator = s3.get_paginator('list_objects_v2')
            for page in paginator.paginate(Bucket=bucket_name):
                for obj in page.get('Contents', []):
                    total += obj['Size']
        except ClientError as e:
            self.logger.warning(f"Could not calculate size of bucket {bucket_name}: {e.response['Error']['Code']}")
            return 0
        return total

    def track_s3(self):
        self.logger.header("S3 BUCKET TRACKING")
        self.logger.info("Fetching S3 bucket information...")

        s3 = self._client('s3')
        buckets = s3.list_buckets().get('Buckets', [])
        rows = [[bucket['Name'], format_timestamp(bucket['CreationDate'])] for bucket in buckets]
        self._record('s3', rows)
        self.logger.info(f"Total S3 buckets: {len(rows)}")

        if not rows:
            self.logger.warning("No S3 buckets found")
            return 0

        self.logger.block("S3 Buckets:", [self._table('s3', rows)])

        if self.config.get('calculate_bucket_sizes', True):
            # Lists every object, slow for large buckets
            self.logger.info("Calculating bucket sizes...")
            sizes = {}
            for name, _ in rows:
                sizes[name] = self.get_bucket_size(s3, name)
                self.logger.info(f"Bucket: {name}, Size: {sizes[name]} bytes")
            self.details['s3_bucket_sizes'] = sizes

        return len(rows)

    def track_ec2(self):
        self.logger.header("EC2 INSTANCE TRACKING")
        self.logger.info("Fetching EC2 instance information...")

        ec2 = self._client('ec2')
        instances = []
        paginator = ec2.get_paginator('describe_instances')
        for page in paginator.paginate():
            for reservation in page['Reservations']:
                instances.extend(reservation['Instances'])

        rows = []
        for instance in instances:
            name = next((tag['Value'] for tag in instance.get('Tags', []) if tag['Key'] == 'Name'), '')
            rows.append([
                instance['InstanceId'],
                instance['InstanceType'],
                instance['State']['Name'],
                format_timestamp(instance['LaunchTime']),
                name,
            ])
        self._record('ec2', rows)
        self.logger.info(f"Total EC2 instances: {len(rows)}")

        if not rows:
            self.logger.warning("No EC2 instances found")
            return 0

        self.logger.block("EC2 Instances:", [self._table('ec2', rows)])

        states = Counter(row[2] for row in rows)
        self.details['ec2_states'] = dict(states)
        self.logger.info(f"Running instances: {states.get('running', 0)}")
        self.logger.info(f"Stopped instances: {states.get('stopped', 0)}")
        self.logger.info(f"Terminated instances: {states.get('terminated', 0)}")
        for state in sorted(set(states) - {'running', 'stopped', 'terminated'}):
            self.logger.info(f"{state.capitalize()} instances: {states[state]}")

        return len(rows)

    def track_lambda(self):
        self.logger.header("LAMBDA FUNCTION TRACKING")
        self.logger.info("Fetching Lambda function information...")

        lambda_client = self._client('lambda')
        functions = []
        paginator = lambda_client.get_paginator('list_functions')
        for page in paginator.paginate():
            functions.extend(page['Functions'])

        rows = [[
            func['FunctionName'],
            func.get('Runtime', 'N/A'),
            func.get('LastModified', 'N/A'),
            func.get('CodeSize', 0),
            func.get('Timeout', 'N/A'),
        ] for func in functions]
        self._record('lambda', rows)
        self.logger.info(f"Total Lambda functions: {len(rows)}")

        if not rows:
            self.logger.warning("No Lambda functions found")
            return 0

        self.logger.block("Lambda Functions:", [self._table('lambda', rows)])

        total_size = sum(row[3] for row in rows)
        self.details['lambda_code_size'] = total_size
        self.logger.info(f"Total Lambda code size: {total_size} bytes")

        return len(rows)

    def has_console_access(self, iam, username):
        try:
            iam.get_login_profile(UserName=username)
            return True
        except ClientError as e:
            if e.response['Error']['Code'] != 'NoSuchEntity':
                self.logger.warning(f"Could not check console access for {username}: {e.response['Error']['Code']}")
            return False

    def track_iam(self):
        self.logger.header("IAM USER TRACKING")
        self.logger.info("Fetching IAM user information...")

        iam = self._client('iam')
        users = []
        paginator = iam.get_paginator('list_users')
        for page in paginator.paginate():
            users.extend(page['Users'])

        rows = [[
            user['UserName'],
            format_timestamp(user['CreateDate']),
            format_timestamp(user.get('PasswordLastUsed', 'Never')),
        ] for user in users]
        self._record('iam', rows)
        self.logger.info(f"Total IAM users: {len(rows)}")

        if not rows:
            self.logger.warning("No IAM users found")
            return 0

        self.logger.block("IAM Users:", [self._table('iam', rows)])

        if self.config.get('check_console_access', True):
            console_users = sum(1 for row in rows if self.has_console_access(iam, row[0]))
            self.details['iam_console_users'] = console_users
            self.logger.info(f"Users with console access: {console_users}")

        return len(rows)

    def generate_summary(self):
        """Summary block from the counts already collected"""
        self.logger.header("RESOURCE SUMMARY")

        lines = [f"{RESOURCE_LABELS[key]}: {count}" for key, count in self.counts.items()]
        lines.append(f"Report generated: {datetime.now().strftime('%a %b %d %H:%M:%S %Y')}")
        if self.logger.log_file:
            lines.append(f"Log file: {self.logger.log_file}")
        self.logger.block("RESOURCE SUMMARY:", lines)

    def run(self):
        self.logger.info(f"Starting AWS Resource Tracker - {datetime.now().strftime('%a %b %d %H:%M:%S %Y')}")
        if self.logger.log_file:
            self.logger.info(f"Log file: {self.logger.log_file}")

        self.check_prerequisites()

        trackers = [
            ('track_s3', self.track_s3),
            ('track_ec2', self.track_ec2),
            ('track_lambda', self.track_lambda),
            ('track_iam', self.track_iam),
        ]
        for toggle, track in trackers:
            if self.config.get(toggle, True):
                track()
            else:
                self.logger.info(f"Skipping {RESOURCE_LABELS[toggle[len('track_'):]]} (disabled in configuration)")

        self.generate_summary()
        self.logger.info("AWS Resource Tracking completed successfully")
        return dict(self.counts)

    def export_json(self, output_file):
        output_data = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'account_id': (self.identity or {}).get('Account'),
            'counts': self.counts,
            'details': self.details,
            'resources': {
                key: [dict(zip(RESOURCE_HEADERS[key], row)) for row in rows]
                for key, rows in self.inventory.items()
            },
        }
        with open(output_file, 'w') as f:
            json.dump(output_data, f, indent=2, default=str)
        self.logger.info(f"Results saved to {output_file}")

    def export_csv(self, output_file):
        csv_data = []
        for key, rows in self.inventory.items():
            for row in rows:
                csv_data.append({
                    'Account ID': (self.identity or {}).get('Account', ''),
                    'Resource Type': key,
                    'Resource Details': ' | '.join(str(x) for x in row),
                })

        with open(output_file, 'w', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=['Account ID', 'Resource Type', 'Resource Details'])
            writer.writeheader()
            writer.writerows(csv_data)
        self.logger.info(f"Results saved to {output_file}")


def build_parser():
    parser = argparse.ArgumentParser(
        prog='aws-resource-tracker',
        description='Track AWS S3, EC2, Lambda and IAM usage and write a timestamped report.',
    )
    parser.add_argument('-c', '--config', help='Path to config.conf (default: ./config.conf if present)')
    parser.add_argument('--log-dir', help='Directory for report files')
    parser.add_argument('--region', help='AWS region for regional services')
    parser.add_argument('--profile', help='AWS profile name')
    parser.add_argument('--no-bucket-sizes', action='store_true', help='Skip per-bucket size calculation')
    parser.add_argument('--no-console-check', action='store_true', help='Skip IAM console access check')
    parser.add_argument('--export-json', metavar='PATH', help='Also write the inventory as JSON')
    parser.add_argument('--export-csv', metavar='PATH', help='Also write the inventory as CSV')
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger = setup_logging()
        logger.error(str(e))
        logger.close()
        return 1

    apply_overrides(
        config,
        log_dir=args.log_dir,
        aws_region=args.region,
        aws_profile=args.profile,
        calculate_bucket_sizes=False if args.no_bucket_sizes else None,
        check_console_access=False if args.no_console_check else None,
    )

    try:
        logger = setup_logging(log_file=report_path(config['log_dir']))
    except OSError as e:
        logger = setup_logging()
        logger.error(f"Cannot create report file in {config['log_dir']}: {e}")
        logger.close()
        return 1

    try:
        tracker = ResourceTracker(config, logger=logger)
        tracker.run()
        if args.export_json:
            tracker.export_json(args.export_json)
        if args.export_csv:
            tracker.export_csv(args.export_csv)
    except KeyboardInterrupt:
        logger.error("Script interrupted")
        return 1
    except TrackerError as e:
        logger.error(str(e))
        return 1
    except (ClientError, BotoCoreError) as e:
        logger.error(f"AWS API call failed: {e}")
        return 1
    except OSError as e:
        logger.error(f"Cannot write output: {e}")
        return 1
    finally:
        logger.close()

    report = f"Report saved to: {logger.log_file}"
    print(f"\n{colorize(report, 'green') if sys.stdout.isatty() else report}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

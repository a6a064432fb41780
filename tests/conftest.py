import io
import os
import time

import boto3
import pytest
from botocore.stub import Stubber

from resource_tracker.config import DEFAULT_CONFIG
from resource_tracker.logger import setup_logging


class FakeSession:
    """Stands in for boto3.Session, handing out pre-stubbed clients"""

    def __init__(self, clients):
        self.clients = clients
        self.region_name = 'us-east-1'

    def client(self, service, **kwargs):
        return self.clients[service]


@pytest.fixture
def stubbed_client():
    stubbers = []

    def factory(service):
        client = boto3.client(
            service,
            region_name='us-east-1',
            aws_access_key_id='testing',
            aws_secret_access_key='testing',
        )
        stubber = Stubber(client)
        stubber.activate()
        stubbers.append(stubber)
        return client, stubber

    yield factory

    for stubber in stubbers:
        stubber.assert_no_pending_responses()
        stubber.deactivate()


@pytest.fixture
def sts_client(stubbed_client):
    client, stubber = stubbed_client('sts')
    stubber.add_response('get_caller_identity', {
        'UserId': 'AIDAEXAMPLE',
        'Account': '123456789012',
        'Arn': 'arn:aws:iam::123456789012:user/tracker',
    })
    return client


@pytest.fixture
def config(tmp_path):
    config = DEFAULT_CONFIG.copy()
    config['log_dir'] = str(tmp_path / 'logs')
    return config


@pytest.fixture
def console():
    return io.StringIO()


@pytest.fixture
def report_logger(config, console):
    log_file = os.path.join(config['log_dir'], 'aws_resource_report_2024-01-15_18-30-00.log')
    logger = setup_logging(name='resource_tracker.test', log_file=log_file, stream=console)
    yield logger
    logger.close()


def read_log(logger):
    with open(logger.log_file, encoding='utf-8') as f:
        return f.read()


def make_log(directory, name, age_days, content="report\n"):
    """Create a file whose mtime is ``age_days`` in the past"""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(content)
    mtime = time.time() - age_days * 86400
    os.utime(path, (mtime, mtime))
    return str(path)

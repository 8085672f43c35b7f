"""Unit tests for DynamoDB ledger."""
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws

from processor.exceptions import LedgerUnavailable
from storage.dynamodb_ledger import DynamoDBLedger, format_timestamp, parse_timestamp


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mocked AWS credentials for moto."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')


@pytest.fixture
def dynamodb(aws_credentials):
    """Create a mock DynamoDB ledger table for testing."""
    with mock_aws():
        resource = boto3.resource('dynamodb', region_name='us-east-1')
        resource.create_table(
            TableName='test-processed-events',
            KeySchema=[
                {'AttributeName': 'fingerprint', 'KeyType': 'HASH'}
            ],
            AttributeDefinitions=[
                {'AttributeName': 'fingerprint', 'AttributeType': 'S'}
            ],
            BillingMode='PAY_PER_REQUEST'
        )
        yield resource


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def ledger(dynamodb, clock):
    """Create DynamoDBLedger instance with mock table."""
    return DynamoDBLedger('test-processed-events', dynamodb=dynamodb, clock=clock)


def test_load_all_empty_table(ledger):
    """Test load_all returns an empty set for an empty table."""
    assert ledger.load_all() == set()


def test_record_and_load_all(ledger):
    assert ledger.record('fp-1') is True
    assert ledger.record('fp-2') is True

    assert ledger.load_all() == {'fp-1', 'fp-2'}
    assert ledger.contains('fp-1')
    assert not ledger.contains('fp-3')


def test_record_stores_processed_at(ledger, clock):
    ledger.record('fp-1')

    record = ledger.get('fp-1')

    assert record.fingerprint == 'fp-1'
    assert record.processed_at == clock.now


def test_duplicate_record_is_noop(ledger, clock):
    """Test that a second write keeps the original processed_at."""
    ledger.record('fp-1')
    clock.now += timedelta(days=3)

    assert ledger.record('fp-1') is False
    assert ledger.get('fp-1').processed_at == datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def test_record_many(ledger):
    assert ledger.record_many(['fp-1', 'fp-2', 'fp-1']) == 2
    assert ledger.count() == 2


def test_clear_more_than_one_batch(ledger):
    """Test clear with more than 25 items (batch limit)."""
    ledger.record_many([f'fp-{i}' for i in range(30)])

    assert ledger.clear() == 30
    assert ledger.load_all() == set()


def test_prune_removes_old_entries(ledger, clock):
    ledger.record('old-1')
    ledger.record('old-2')
    clock.now += timedelta(days=95)
    ledger.record('recent')

    removed = ledger.prune(timedelta(days=90))

    assert removed == 2
    assert ledger.load_all() == {'recent'}


def test_prune_rejects_short_retention(ledger):
    with pytest.raises(ValueError):
        ledger.prune(timedelta(days=7))


def test_missing_table_raises_ledger_unavailable(dynamodb):
    """Test that store errors surface as LedgerUnavailable."""
    ledger = DynamoDBLedger('missing-table', dynamodb=dynamodb)

    with pytest.raises(LedgerUnavailable):
        ledger.load_all()
    with pytest.raises(LedgerUnavailable):
        ledger.record('fp-1')


def test_write_error_raises_ledger_unavailable(ledger):
    ledger.table = Mock()
    ledger.table.put_item.side_effect = ClientError(
        {'Error': {'Code': 'ProvisionedThroughputExceededException', 'Message': 'slow down'}},
        'PutItem'
    )

    with pytest.raises(LedgerUnavailable):
        ledger.record('fp-1')


def test_timestamp_round_trip():
    value = datetime(2025, 6, 1, 12, 30, 15, 123456, tzinfo=timezone.utc)

    assert format_timestamp(value) == '2025-06-01T12:30:15.123456Z'
    assert parse_timestamp(format_timestamp(value)) == value

"""DynamoDB-backed ledger of delivered event fingerprints."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional, Set

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError

from processor.exceptions import LedgerUnavailable
from processor.models import ProcessedRecord
from storage.ledger import Ledger, check_retention, utc_now

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = '%Y-%m-%dT%H:%M:%S.%fZ'


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


class DynamoDBLedger(Ledger):
    """Ledger stored in a DynamoDB table keyed on 'fingerprint'."""

    BATCH_SIZE = 25  # DynamoDB batch operation limit

    def __init__(
        self,
        table_name: str,
        dynamodb=None,
        region_name: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        """
        Initialize the DynamoDB table reference.

        Args:
            table_name: Name of the DynamoDB table
            dynamodb: Existing boto3 DynamoDB resource to use
            region_name: AWS region when a resource must be created
            clock: Source of processed_at timestamps
        """
        super().__init__()
        self.table_name = table_name
        self.dynamodb = dynamodb or boto3.resource('dynamodb', region_name=region_name)
        self.table = self.dynamodb.Table(table_name)
        self._clock = clock
        logger.info(f"Initialized DynamoDBLedger for table: {table_name}")

    def contains(self, fingerprint: str) -> bool:
        try:
            response = self.table.get_item(
                Key={'fingerprint': fingerprint},
                ProjectionExpression='fingerprint'
            )
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable('reading', e) from e
        return 'Item' in response

    def get(self, fingerprint: str) -> Optional[ProcessedRecord]:
        """Fetch a single ledger entry, or None if absent."""
        try:
            response = self.table.get_item(Key={'fingerprint': fingerprint})
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable('reading', e) from e
        item = response.get('Item')
        if not item:
            return None
        return ProcessedRecord(
            fingerprint=item['fingerprint'],
            processed_at=parse_timestamp(item['processed_at'])
        )

    def load_all(self) -> Set[str]:
        """
        Retrieve every fingerprint using a paginated Scan.

        Returns:
            Set of fingerprints

        Raises:
            LedgerUnavailable: If the table cannot be scanned
        """
        logger.info("Scanning ledger table for fingerprints")
        items = self._scan(ProjectionExpression='fingerprint')
        fingerprints = {item['fingerprint'] for item in items}
        logger.info(f"Loaded {len(fingerprints)} fingerprints from ledger")
        return fingerprints

    def record(self, fingerprint: str) -> bool:
        """
        Write a fingerprint unless it is already present.

        The conditional put keeps the first processed_at untouched, so a
        repeated write after a redelivery is a no-op.

        Returns:
            True if written, False if it already existed
        """
        try:
            self.table.put_item(
                Item={
                    'fingerprint': fingerprint,
                    'processed_at': format_timestamp(self._clock())
                },
                ConditionExpression='attribute_not_exists(fingerprint)'
            )
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') == 'ConditionalCheckFailedException':
                logger.debug(f"Fingerprint already in ledger: {fingerprint}")
                return False
            raise self._unavailable('writing', e) from e
        except BotoCoreError as e:
            raise self._unavailable('writing', e) from e
        return True

    def clear(self) -> int:
        """Delete every entry in the table."""
        fingerprints = [item['fingerprint'] for item in self._scan(ProjectionExpression='fingerprint')]
        deleted = self._batch_delete(fingerprints)
        logger.info(f"Cleared {deleted} fingerprints from ledger")
        return deleted

    def prune(self, older_than: timedelta) -> int:
        """
        Delete entries processed before now - older_than.

        Args:
            older_than: Retention window, at least MIN_RETENTION_DAYS

        Returns:
            Count of deleted entries
        """
        check_retention(older_than)
        cutoff = format_timestamp(self._clock() - older_than)
        items = self._scan(
            ProjectionExpression='fingerprint',
            FilterExpression=Attr('processed_at').lt(cutoff)
        )
        deleted = self._batch_delete([item['fingerprint'] for item in items])
        logger.info(f"Pruned {deleted} fingerprints processed before {cutoff}")
        return deleted

    def _scan(self, **kwargs) -> List[dict]:
        try:
            response = self.table.scan(**kwargs)
            items = response.get('Items', [])

            # Handle pagination
            while 'LastEvaluatedKey' in response:
                response = self.table.scan(
                    ExclusiveStartKey=response['LastEvaluatedKey'],
                    **kwargs
                )
                items.extend(response.get('Items', []))
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable('scanning', e) from e
        return items

    def _batch_delete(self, fingerprints: Iterable[str]) -> int:
        fingerprints = list(fingerprints)
        deleted = 0

        # Process in batches of 25 (DynamoDB limit)
        for i in range(0, len(fingerprints), self.BATCH_SIZE):
            batch = fingerprints[i:i + self.BATCH_SIZE]
            try:
                with self.table.batch_writer() as writer:
                    for fingerprint in batch:
                        writer.delete_item(Key={'fingerprint': fingerprint})
            except (ClientError, BotoCoreError) as e:
                raise self._unavailable('deleting from', e) from e
            deleted += len(batch)

        return deleted

    def _unavailable(self, action: str, error: Exception) -> LedgerUnavailable:
        logger.error(f"Error {action} ledger table {self.table_name}: {error}")
        return LedgerUnavailable(f"Ledger table {self.table_name} unavailable: {error}")

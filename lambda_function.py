"""AWS Lambda handler for the event listing sync."""
import json
import logging
import os
import time
from typing import Any, Dict, List

import requests

from delivery.client import HttpDeliveryClient
from delivery.field_mapping import validate_mapping
from delivery.retry import RetryingDelivery
from processor.canonicalizer import EventCanonicalizer
from processor.exceptions import LedgerUnavailable, SyncCancelled, SyncInProgress
from scraper.registry import SOURCE_REGISTRY, build_adapters
from storage.dynamodb_ledger import DynamoDBLedger
from workflow.sync import FULL, INCREMENTAL, SyncWorkflow

PRUNE = 'prune'
MODES = (INCREMENTAL, FULL, PRUNE)

# Attributes every LogRecord carries; anything else came in through `extra`
_RESERVED_LOG_ATTRS = set(vars(logging.LogRecord('', 0, '', 0, '', (), None))) | {'message', 'asctime'}


class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON, including `extra` fields."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_LOG_ATTRS and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {'statusCode': status_code, 'body': json.dumps(body)}


def _error_response(
    status_code: int,
    message: str,
    error: Exception,
    start_time: float,
    **fields: Any
) -> Dict[str, Any]:
    body = {
        'message': message,
        'error': str(error),
        'error_type': type(error).__name__,
        'duration_seconds': round(time.time() - start_time, 2)
    }
    body.update(fields)
    return _response(status_code, body)


def _requested_sources(event: Dict[str, Any], enabled_sources: str) -> List[str]:
    """
    Source names for this invocation.

    The event's `sources` (or `scrapeOnly`) field narrows the run to the
    given names, as a list or a comma-separated string. Without it the
    configured ENABLED_SOURCES apply.
    """
    requested = event.get('sources') or event.get('scrapeOnly')
    if not requested:
        return enabled_sources.split(',')
    if isinstance(requested, (list, tuple)):
        return [str(name) for name in requested]
    return str(requested).split(',')


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Run a sync in the mode requested by the invocation payload.

    Args:
        event: Invocation payload; `mode` is 'incremental' (default),
            'full' or 'prune'; optional `sources` limits the run to the
            named sources
        context: Lambda context object

    Returns:
        Response dict with statusCode and summary statistics
    """
    # Read configuration from environment variables
    table_name = os.environ.get('LEDGER_TABLE_NAME', 'processed-events')
    log_level = os.environ.get('LOG_LEVEL', 'INFO')
    endpoint = os.environ.get('DELIVERY_ENDPOINT', '')
    api_key = os.environ.get('DELIVERY_API_KEY', '')
    enabled_sources = os.environ.get('ENABLED_SOURCES', ','.join(SOURCE_REGISTRY))
    timeout_seconds = int(os.environ.get('TIMEOUT_SECONDS', '30'))
    fetch_retries = int(os.environ.get('FETCH_RETRIES', '3'))
    retention_days = int(os.environ.get('RETENTION_DAYS', '90'))
    field_mapping_json = os.environ.get('FIELD_MAPPING', '')
    user_agent = os.environ.get(
        'USER_AGENT',
        'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36'
    )

    setup_logging(log_level)
    logger = logging.getLogger(__name__)

    start_time = time.time()
    event = event or {}
    mode = str(event.get('mode') or INCREMENTAL).strip().lower()
    source_names = _requested_sources(event, enabled_sources)
    logger.info(
        "Lambda execution started",
        extra={
            'mode': mode,
            'table_name': table_name,
            'sources': source_names,
            'timeout_seconds': timeout_seconds
        }
    )

    if mode not in MODES:
        return _response(400, {
            'message': f"Unknown mode '{mode}'",
            'allowed_modes': list(MODES)
        })

    session = requests.Session()
    session.headers.update({
        'User-Agent': user_agent,
        'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
        'Accept-Language': 'nl,en-US;q=0.7,en;q=0.5'
    })

    try:
        field_mapping = None
        if field_mapping_json:
            field_mapping = validate_mapping(json.loads(field_mapping_json))

        ledger = DynamoDBLedger(table_name=table_name)
        adapters = []
        delivery = None
        if mode != PRUNE:
            adapters = build_adapters(
                source_names,
                session,
                timeout=timeout_seconds,
                retries=fetch_retries
            )
            delivery = RetryingDelivery(
                HttpDeliveryClient(
                    endpoint=endpoint,
                    session=session,
                    api_key=api_key,
                    field_mapping=field_mapping
                )
            )
        workflow = SyncWorkflow(
            adapters=adapters,
            ledger=ledger,
            delivery=delivery,
            canonicalizer=EventCanonicalizer()
        )

        if mode == PRUNE:
            removed = workflow.prune_ledger(retention_days)
            return _response(200, {
                'message': 'Ledger pruned successfully',
                'removed': removed,
                'retention_days': retention_days,
                'duration_seconds': round(time.time() - start_time, 2)
            })

        if mode == FULL:
            result = workflow.run_full_sync()
        else:
            result = workflow.run_incremental_sync()

        logger.info(
            "Lambda execution completed successfully",
            extra={
                'mode': mode,
                'duration_seconds': round(time.time() - start_time, 2),
                'events_collected': result.collected,
                'events_new': result.new,
                'events_delivered': result.delivered,
                'error_count': result.errors
            }
        )
        return _response(200, {
            'message': 'Sync completed successfully',
            'statistics': {
                'mode': result.mode,
                'collected': result.collected,
                'unique': result.unique,
                'new': result.new,
                'delivered': result.delivered,
                'errors': result.errors,
                'duration_seconds': round(time.time() - start_time, 2)
            },
            'source_errors': result.source_errors,
            'errors': result.error_messages
        })

    except SyncInProgress as e:
        logger.warning(f"Sync rejected: {e}")
        return _error_response(409, 'Another sync is running', e, start_time)

    except LedgerUnavailable as e:
        logger.error(
            f"Ledger unavailable, sync aborted: {e}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return _error_response(
            500, 'Ledger unavailable', e, start_time,
            note='Undelivered events remain unledgered and will be retried'
        )

    except SyncCancelled as e:
        logger.warning(f"Sync cancelled: {e}")
        return _error_response(503, 'Sync cancelled', e, start_time)

    except Exception as e:
        logger.error(
            f"Lambda execution failed: {e}",
            extra={
                'duration_seconds': round(time.time() - start_time, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        return _error_response(500, 'Sync failed', e, start_time)

    finally:
        session.close()

"""Delivery clients sending canonical events downstream."""
import logging
from abc import ABC, abstractmethod
from typing import Mapping, Optional

import requests

from delivery.field_mapping import to_wire_payload
from processor.exceptions import DeliveryError
from processor.models import CanonicalEvent

logger = logging.getLogger(__name__)


class DeliveryClient(ABC):
    """Accepts one canonical event and reports success or failure."""

    @abstractmethod
    def send(self, event: CanonicalEvent) -> bool:
        """
        Send a single event.

        Returns:
            True if the consumer accepted the event

        Raises:
            DeliveryError: If the event could not be transmitted at all
        """


class HttpDeliveryClient(DeliveryClient):
    """POSTs events as JSON to a webhook endpoint."""

    def __init__(
        self,
        endpoint: str,
        session: requests.Session,
        api_key: Optional[str] = None,
        field_mapping: Optional[Mapping[str, str]] = None,
        timeout: int = 10
    ):
        """
        Initialize the delivery client.

        Args:
            endpoint: URL of the downstream consumer
            session: HTTP session owned by the caller
            api_key: Bearer token, omitted from headers when empty
            field_mapping: Canonical -> wire field renames
            timeout: Per-request timeout in seconds (default: 10)
        """
        if not endpoint:
            raise ValueError("Delivery endpoint is required")
        self.endpoint = endpoint
        self.session = session
        self.api_key = api_key
        self.field_mapping = field_mapping
        self.timeout = timeout

    def send(self, event: CanonicalEvent) -> bool:
        headers = {'Content-Type': 'application/json'}
        if self.api_key and self.api_key.strip():
            headers['Authorization'] = f"Bearer {self.api_key.strip()}"

        payload = to_wire_payload(event, self.field_mapping)

        try:
            response = self.session.post(
                self.endpoint,
                json=payload,
                headers=headers,
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise DeliveryError(f"Error sending event '{event.name}': {e}") from e

        if 200 <= response.status_code < 300:
            logger.debug(f"Sent event: {event.name}")
            return True

        logger.warning(
            f"Consumer rejected event '{event.name}' with status {response.status_code}"
        )
        return False

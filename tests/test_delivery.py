"""Unit tests for delivery clients, field mapping and the retry policy."""
import json

import pytest
import requests
import responses
from requests.exceptions import ConnectionError

from delivery.client import DeliveryClient, HttpDeliveryClient
from delivery.field_mapping import DEFAULT_FIELD_MAPPING, to_wire_payload, validate_mapping
from delivery.retry import RetryingDelivery
from processor.exceptions import DeliveryError, SyncCancelled
from processor.models import CanonicalEvent

ENDPOINT = "https://hooks.example.com/events"


@pytest.fixture
def sample_event():
    return CanonicalEvent(
        name="Into The Woods",
        date="2025-12-01",
        location="Amsterdamse Bos",
        organizer="ITW Events",
        contact="info@itw.nl",
        source="FestivalInfo.nl",
        duration_days=2,
        fingerprint="0123456789abcdef"
    )


class ScriptedClient(DeliveryClient):
    """Delivery client replaying a fixed list of outcomes."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.sent = []

    def send(self, event):
        self.sent.append(event)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class TestFieldMapping:
    """Test cases for the canonical -> wire rename."""

    def test_default_mapping(self, sample_event):
        payload = to_wire_payload(sample_event)

        assert payload == {
            'event_date': "2025-12-01",
            'evenement_naam': "Into The Woods",
            'locatie_evenement': "Amsterdamse Bos",
            'organisator': "ITW Events",
            'contact_organisator': "info@itw.nl",
            'bron': "FestivalInfo.nl",
            'duur_evenement': 2,
            'sleutel': "0123456789abcdef",
        }

    def test_partial_mapping_keeps_canonical_names(self, sample_event):
        payload = to_wire_payload(sample_event, {'name': 'title'})

        assert payload['title'] == "Into The Woods"
        assert payload['date'] == "2025-12-01"
        assert payload['fingerprint'] == "0123456789abcdef"
        assert 'name' not in payload

    def test_mapping_does_not_touch_the_event(self, sample_event):
        to_wire_payload(sample_event, DEFAULT_FIELD_MAPPING)

        assert sample_event.name == "Into The Woods"

    def test_validate_mapping_rejects_unknown_fields(self):
        with pytest.raises(ValueError):
            validate_mapping({'title': 'name'})

    def test_validate_mapping_rejects_colliding_wire_names(self):
        with pytest.raises(ValueError):
            validate_mapping({'name': 'date'})

    def test_validate_mapping_accepts_default(self):
        assert validate_mapping(DEFAULT_FIELD_MAPPING) == DEFAULT_FIELD_MAPPING


class TestHttpDeliveryClient:
    """Test cases for HttpDeliveryClient."""

    @responses.activate
    def test_send_success(self, sample_event):
        """Test a 2xx response counts as delivered."""
        responses.add(responses.POST, ENDPOINT, json={'ok': True}, status=201)

        with requests.Session() as session:
            client = HttpDeliveryClient(ENDPOINT, session, api_key="secret")
            assert client.send(sample_event) is True

        request = responses.calls[0].request
        assert request.headers['Authorization'] == "Bearer secret"
        assert request.headers['Content-Type'] == "application/json"
        assert json.loads(request.body)['sleutel'] == "0123456789abcdef"

    @responses.activate
    def test_send_without_api_key_omits_authorization(self, sample_event):
        responses.add(responses.POST, ENDPOINT, status=200)

        with requests.Session() as session:
            HttpDeliveryClient(ENDPOINT, session, api_key="  ").send(sample_event)

        assert 'Authorization' not in responses.calls[0].request.headers

    @responses.activate
    def test_send_uses_custom_field_mapping(self, sample_event):
        responses.add(responses.POST, ENDPOINT, status=200)

        with requests.Session() as session:
            HttpDeliveryClient(ENDPOINT, session, field_mapping={'name': 'title'}).send(sample_event)

        body = json.loads(responses.calls[0].request.body)
        assert body['title'] == "Into The Woods"

    @responses.activate
    def test_send_rejected_status(self, sample_event):
        """Test a non-2xx response counts as failure."""
        responses.add(responses.POST, ENDPOINT, status=500)

        with requests.Session() as session:
            assert HttpDeliveryClient(ENDPOINT, session).send(sample_event) is False

    @responses.activate
    def test_send_transport_error_raises(self, sample_event):
        responses.add(responses.POST, ENDPOINT, body=ConnectionError("connection refused"))

        with requests.Session() as session:
            with pytest.raises(DeliveryError):
                HttpDeliveryClient(ENDPOINT, session).send(sample_event)

    def test_endpoint_is_required(self):
        with pytest.raises(ValueError):
            HttpDeliveryClient("", requests.Session())


class TestRetryingDelivery:
    """Test cases for deliver_with_retry."""

    def test_success_on_first_attempt(self, sample_event):
        delays = []
        client = ScriptedClient([True])
        delivery = RetryingDelivery(client, sleep=delays.append)

        assert delivery.deliver_with_retry(sample_event) is True
        assert delivery.last_attempts == 1
        assert delays == [0.1]

    def test_fails_twice_then_succeeds(self, sample_event):
        """Test that the third attempt succeeds after backoff."""
        delays = []
        client = ScriptedClient([False, DeliveryError("boom"), True])
        delivery = RetryingDelivery(client, sleep=delays.append)

        assert delivery.deliver_with_retry(sample_event) is True
        assert len(client.sent) == 3
        assert delivery.last_attempts == 3
        assert delays == [0.1, 2.0, 0.1, 4.0, 0.1]

    def test_all_attempts_fail(self, sample_event):
        """Test exhausting all attempts returns False without raising."""
        delays = []
        client = ScriptedClient([False, False, False])
        delivery = RetryingDelivery(client, sleep=delays.append)

        assert delivery.deliver_with_retry(sample_event) is False
        assert len(client.sent) == 3
        assert delays == [0.1, 2.0, 0.1, 4.0, 0.1]

    def test_custom_attempt_count(self, sample_event):
        client = ScriptedClient([False] * 5)
        delivery = RetryingDelivery(client, max_attempts=5, sleep=lambda seconds: None)

        assert delivery.deliver_with_retry(sample_event) is False
        assert len(client.sent) == 5

    def test_should_stop_cancels_between_attempts(self, sample_event):
        """Test cooperative cancellation before a retry."""
        client = ScriptedClient([False, True])
        stop_flags = iter([False, True])
        delivery = RetryingDelivery(
            client,
            sleep=lambda seconds: None,
            should_stop=lambda: next(stop_flags)
        )

        with pytest.raises(SyncCancelled):
            delivery.deliver_with_retry(sample_event)

        assert len(client.sent) == 1

"""Declarative rename of canonical event fields to the downstream wire schema."""
from typing import Any, Dict, Mapping, Optional

from processor.models import CanonicalEvent

# Field names expected by the downstream consumer
DEFAULT_FIELD_MAPPING = {
    'date': 'event_date',
    'name': 'evenement_naam',
    'location': 'locatie_evenement',
    'organizer': 'organisator',
    'contact': 'contact_organisator',
    'source': 'bron',
    'duration_days': 'duur_evenement',
    'fingerprint': 'sleutel',
}


def to_wire_payload(
    event: CanonicalEvent,
    mapping: Optional[Mapping[str, str]] = None
) -> Dict[str, Any]:
    """
    Rename canonical fields for the wire.

    Canonical fields missing from the mapping keep their own name.

    Args:
        event: Canonical event to send
        mapping: Canonical field name -> wire field name

    Returns:
        JSON-serializable payload dict
    """
    if mapping is None:
        mapping = DEFAULT_FIELD_MAPPING
    return {mapping.get(key, key): value for key, value in event.to_dict().items()}


def validate_mapping(mapping: Mapping[str, str]) -> Dict[str, str]:
    """
    Check a caller-supplied mapping.

    Raises:
        ValueError: If it names unknown canonical fields or maps two
            fields to the same wire name
    """
    canonical_fields = set(CanonicalEvent.__dataclass_fields__)
    unknown = set(mapping) - canonical_fields
    if unknown:
        raise ValueError(f"Unknown canonical fields in mapping: {sorted(unknown)}")

    wire_names = [mapping.get(key, key) for key in canonical_fields]
    if len(set(wire_names)) != len(wire_names):
        raise ValueError("Field mapping produces duplicate wire field names")

    return dict(mapping)

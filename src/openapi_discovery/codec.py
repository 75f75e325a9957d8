"""
Discovery Store Codec.

Serializes the discovery document to the JSON blob kept under the
``discovery.json`` key of the discovery ConfigMap, and back::

    {
      "apis": [
        {"id": "shop-orders", "name": "Orders API", "namespace": "shop",
         "service_name": "orders", "url": "http://...", "description": null,
         "last_updated": "2024-05-01T10:00:00.000000Z", "available": true,
         "spec": "{...}"}
      ],
      "last_updated": "2024-05-01T10:00:00.000000Z"
    }
"""

import builtins
import json
import logging
import re
from datetime import datetime, timezone
from typing import Any

from .errors import CodecError
from .models import DiscoveryDocument, DiscoveryEntry

logger = logging.getLogger(__name__)

DISCOVERY_DATA_KEY = "discovery.json"

_FRACTION_RE = re.compile(r"\.(\d+)")


def format_timestamp(value: datetime) -> str:
    """Format an RFC3339 UTC timestamp with a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds").replace(
        "+00:00", "Z"
    )


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC3339 timestamp into an aware UTC datetime.

    Accepts ``Z`` or numeric offsets and fractional seconds of any precision
    (nanosecond timestamps are truncated to microseconds).
    """
    if not isinstance(value, str) or not value:
        raise CodecError(f"Invalid timestamp: {value!r}")

    text = value.strip()
    if text[-1] in "zZ":
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise CodecError(f"Invalid timestamp: {value!r}") from e

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def entry_to_dict(entry: DiscoveryEntry) -> builtins.dict[str, Any]:
    return {
        "id": entry.id,
        "name": entry.name,
        "namespace": entry.namespace,
        "service_name": entry.service_name,
        "url": entry.url,
        "description": entry.description,
        "last_updated": format_timestamp(entry.last_updated),
        "available": entry.available,
        "spec": entry.spec,
    }


def entry_from_dict(data: builtins.dict[str, Any]) -> DiscoveryEntry:
    if not isinstance(data, dict):
        raise CodecError(f"API entry must be an object, got {type(data).__name__}")

    available = data.get("available", False)
    if not isinstance(available, bool):
        raise CodecError(f"API entry field 'available' must be a boolean, got {available!r}")

    try:
        return DiscoveryEntry(
            id=str(data["id"]),
            name=str(data["name"]),
            namespace=str(data["namespace"]),
            service_name=str(data["service_name"]),
            url=str(data["url"]),
            description=data.get("description"),
            last_updated=parse_timestamp(data["last_updated"]),
            available=data["available"],
            spec=str(data["spec"]),
        )
    except KeyError as e:
        raise CodecError(f"API entry missing field {e.args[0]!r}") from e


def encode_document(document: DiscoveryDocument) -> str:
    """Serialize a discovery document to its pretty-printed JSON form."""
    payload = {
        "apis": [entry_to_dict(entry) for entry in document.apis],
        "last_updated": format_timestamp(document.last_updated),
    }
    return json.dumps(payload, indent=2)


def decode_document(text: str) -> DiscoveryDocument:
    """Deserialize a discovery document.

    Raises:
        CodecError: If the text is not a well-formed discovery document
    """
    try:
        payload = json.loads(text)
    except (TypeError, ValueError) as e:
        raise CodecError(f"Discovery document is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise CodecError("Discovery document must be a JSON object")

    apis = payload.get("apis", [])
    if not isinstance(apis, list):
        raise CodecError("Discovery document 'apis' must be a list")

    last_updated = payload.get("last_updated")
    return DiscoveryDocument(
        apis=[entry_from_dict(item) for item in apis],
        last_updated=(
            parse_timestamp(last_updated)
            if last_updated is not None
            else datetime.now(timezone.utc)
        ),
    )


def document_from_config_map_data(
    data: builtins.dict[str, str] | None,
) -> DiscoveryDocument:
    """Decode the document held in ConfigMap data.

    A missing, blank or undecodable payload yields an empty document so the
    next successful write replaces it.
    """
    text = (data or {}).get(DISCOVERY_DATA_KEY)
    if not text or not text.strip():
        return DiscoveryDocument.empty()

    try:
        return decode_document(text)
    except CodecError as e:
        logger.warning(f"Discarding undecodable discovery document: {e}")
        return DiscoveryDocument.empty()


def document_to_config_map_data(document: DiscoveryDocument) -> builtins.dict[str, str]:
    return {DISCOVERY_DATA_KEY: encode_document(document)}

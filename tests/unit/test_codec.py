"""
Tests for the discovery document wire format.
"""

import json
from datetime import datetime, timezone

import pytest

from openapi_discovery.codec import (
    DISCOVERY_DATA_KEY,
    decode_document,
    document_from_config_map_data,
    document_to_config_map_data,
    encode_document,
    format_timestamp,
    parse_timestamp,
)
from openapi_discovery.errors import CodecError
from openapi_discovery.models import DiscoveryDocument
from support import BASE_TIME, make_entry

WIRE_DOCUMENT = """
{
  "apis": [
    {
      "id": "shop-orders",
      "name": "Orders API",
      "namespace": "shop",
      "service_name": "orders",
      "url": "http://orders.shop.svc.cluster.local:9090/swagger/openapi.yml",
      "description": null,
      "last_updated": "2024-05-01T10:00:00.123456789Z",
      "available": true,
      "spec": "{}"
    }
  ],
  "last_updated": "2024-05-01T10:00:01Z"
}
"""


class TestTimestamps:
    """Test RFC3339 timestamp handling."""

    def test_format_uses_z_suffix(self):
        assert format_timestamp(BASE_TIME) == "2024-05-01T10:00:00.000000Z"

    def test_format_naive_is_utc(self):
        assert format_timestamp(datetime(2024, 5, 1, 10, 0, 0)) == (
            "2024-05-01T10:00:00.000000Z"
        )

    def test_parse_nanosecond_precision(self):
        parsed = parse_timestamp("2024-05-01T10:00:00.123456789Z")

        assert parsed == datetime(2024, 5, 1, 10, 0, 0, 123456, tzinfo=timezone.utc)

    def test_parse_short_fraction_and_offset(self):
        parsed = parse_timestamp("2024-05-01T12:00:00.5+02:00")

        assert parsed == datetime(2024, 5, 1, 10, 0, 0, 500000, tzinfo=timezone.utc)

    def test_parse_without_fraction(self):
        assert parse_timestamp("2024-05-01T10:00:00Z") == BASE_TIME

    @pytest.mark.parametrize("value", ["", "yesterday", "2024-13-45T00:00:00Z", None])
    def test_parse_invalid(self, value):
        with pytest.raises(CodecError):
            parse_timestamp(value)


class TestDocumentCodec:
    """Test document encoding and decoding."""

    def test_decode_wire_document(self):
        document = decode_document(WIRE_DOCUMENT)

        assert len(document.apis) == 1
        entry = document.apis[0]
        assert entry.id == "shop-orders"
        assert entry.name == "Orders API"
        assert entry.service_name == "orders"
        assert entry.description is None
        assert entry.available is True
        assert entry.last_updated.microsecond == 123456
        assert document.last_updated == datetime(
            2024, 5, 1, 10, 0, 1, tzinfo=timezone.utc
        )

    def test_encode_uses_wire_field_names(self):
        document = DiscoveryDocument(apis=[make_entry()], last_updated=BASE_TIME)

        payload = json.loads(encode_document(document))

        assert set(payload) == {"apis", "last_updated"}
        assert set(payload["apis"][0]) == {
            "id",
            "name",
            "namespace",
            "service_name",
            "url",
            "description",
            "last_updated",
            "available",
            "spec",
        }
        assert payload["apis"][0]["description"] is None
        assert payload["last_updated"] == "2024-05-01T10:00:00.000000Z"

    def test_encode_is_pretty_printed(self):
        text = encode_document(DiscoveryDocument(apis=[], last_updated=BASE_TIME))

        assert text.startswith("{\n  ")

    def test_decode_encoded_document_preserves_entries(self):
        entry = make_entry(name="Orders API")
        entry.description = "Order intake"
        original = DiscoveryDocument(apis=[entry], last_updated=BASE_TIME)

        decoded = decode_document(encode_document(original))

        assert decoded == original

    def test_missing_field_is_an_error(self):
        payload = json.loads(WIRE_DOCUMENT)
        del payload["apis"][0]["spec"]

        with pytest.raises(CodecError, match="spec"):
            decode_document(json.dumps(payload))

    @pytest.mark.parametrize("value", ["false", "true", 0, 1, None])
    def test_non_boolean_availability_is_an_error(self, value):
        payload = json.loads(WIRE_DOCUMENT)
        payload["apis"][0]["available"] = value

        with pytest.raises(CodecError, match="available"):
            decode_document(json.dumps(payload))

    @pytest.mark.parametrize(
        "text",
        ["{not json", "[]", '"text"', '{"apis": {}}', '{"apis": ["entry"]}'],
    )
    def test_malformed_documents(self, text):
        with pytest.raises(CodecError):
            decode_document(text)

    def test_missing_apis_key_is_empty(self):
        document = decode_document('{"last_updated": "2024-05-01T10:00:00Z"}')

        assert document.apis == []


class TestConfigMapData:
    """Test the ConfigMap data wrapper."""

    def test_round_trip_through_data_key(self):
        document = DiscoveryDocument(apis=[make_entry()], last_updated=BASE_TIME)

        data = document_to_config_map_data(document)

        assert list(data) == [DISCOVERY_DATA_KEY]
        assert document_from_config_map_data(data) == document

    @pytest.mark.parametrize(
        "data", [None, {}, {DISCOVERY_DATA_KEY: ""}, {DISCOVERY_DATA_KEY: "  \n"}]
    )
    def test_missing_or_blank_payload_is_empty(self, data):
        assert document_from_config_map_data(data).apis == []

    def test_corrupt_payload_is_empty(self, caplog):
        document = document_from_config_map_data({DISCOVERY_DATA_KEY: "{corrupt"})

        assert document.apis == []
        assert "Discarding undecodable discovery document" in caplog.text

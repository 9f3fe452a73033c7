"""Typed status metadata parsed at the boundary."""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from booking_kernel.domain.status_metadata import (
    BookingStatusMetadata,
    ContractStatusMetadata,
    MusicianStatusMetadata,
    metadata_to_dict,
    parse_status_metadata,
)
from booking_kernel.domain.types import EntityType
from booking_kernel.exceptions import ValidationError


class TestParseStatusMetadata:
    def test_contract_variant_coerces_values(self):
        booking_id = uuid4()
        meta = parse_status_metadata(
            "contract",
            {
                "signed_at": "2025-03-05T20:00:00+00:00",
                "signed_by": "Alice",
                "booking_id": str(booking_id),
            },
        )
        assert isinstance(meta, ContractStatusMetadata)
        assert meta.signed_at == datetime(2025, 3, 5, 20, tzinfo=timezone.utc)
        assert meta.booking_id == booking_id
        assert meta.signature_type == "digital"

    def test_musician_variant(self):
        meta = parse_status_metadata(EntityType.MUSICIAN, {"contract_amount": "300.00"})
        assert meta == MusicianStatusMetadata(contract_amount=Decimal("300.00"))

    def test_none_gives_empty_variant(self):
        assert parse_status_metadata("booking", None) == BookingStatusMetadata()

    def test_unknown_entity_type(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_status_metadata("venue", {})
        assert exc_info.value.field == "entity_type"

    def test_keys_from_another_variant_rejected(self):
        with pytest.raises(ValidationError, match="payment_status"):
            parse_status_metadata("contract", {"payment_status": "paid"})

    def test_bad_value_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_status_metadata("musician", {"contract_id": "not-a-uuid"})
        assert exc_info.value.field == "contract_id"


class TestMetadataToDict:
    def test_json_safe_and_drops_none(self):
        contract_id = uuid4()
        out = metadata_to_dict(MusicianStatusMetadata(contract_id=contract_id, contract_amount=Decimal("12.50")))
        assert out == {"contract_id": str(contract_id), "contract_amount": "12.50"}

    def test_parse_accepts_its_own_output(self):
        meta = ContractStatusMetadata(
            signed_at=datetime(2025, 3, 5, tzinfo=timezone.utc), signed_by="Bob", ip_address="10.0.0.1",
        )
        assert parse_status_metadata("contract", metadata_to_dict(meta)) == meta

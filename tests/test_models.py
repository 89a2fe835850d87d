"""Tests for offer parsing and record mapping."""

from datetime import datetime, timezone

import pytest

from provider_dispatch.exceptions import DispatchError, ValidationError
from provider_dispatch.models.schemas import JobOffer, JobRecord, ProviderProfile, parse_timestamp


class TestJobOffer:

    def test_consultation_spelling(self):
        offer = JobOffer.from_payload({
            "consultationId": "c-1",
            "patientId": "u-1",
            "patientName": "Asha",
            "patientPhone": 9876543210,
            "symptoms": "leaking tap",
            "consultationFee": "450",
            "patientAddress": {"address": "12 MG Road", "latitude": 12.97, "longitude": 77.59, "pincode": 560001},
        })

        assert offer.id == "c-1"
        assert offer.customer_id == "u-1"
        assert offer.customer_name == "Asha"
        assert offer.customer_phone == "9876543210"
        assert offer.problem == "leaking tap"
        assert offer.fee == 450.0
        assert offer.customer_address.pincode == "560001"
        assert offer.raw["consultationId"] == "c-1"

    def test_booking_spelling(self):
        offer = JobOffer.from_payload({
            "bookingId": "b-1",
            "customerId": "u-2",
            "customerName": "Vik",
            "serviceType": "cleaning",
            "serviceFee": 300,
            "customerAddress": "4 Park Street",
        })

        assert offer.id == "b-1"
        assert offer.service_type == "cleaning"
        assert offer.fee == 300.0
        assert offer.customer_address.address == "4 Park Street"
        assert offer.customer_address.has_coordinates is False

    def test_unparseable_values_become_none(self):
        offer = JobOffer.from_payload({"id": 7, "scheduledTime": "someday", "fee": "free"})

        assert offer.id == "7"
        assert offer.scheduled_time is None
        assert offer.fee is None

    def test_missing_id_fails_only_when_required(self):
        offer = JobOffer.from_payload({"patientName": "Asha"})

        assert offer.id is None
        with pytest.raises(ValidationError) as exc_info:
            offer.require_id()
        assert exc_info.value.field == "id"

    def test_non_object_payload(self):
        with pytest.raises(ValidationError):
            JobOffer.from_payload(["job-1"])

    def test_blank_coordinates_become_none(self):
        offer = JobOffer.from_payload({
            "consultationId": "c1",
            "customerAddress": {"address": "12 MG Road", "latitude": "", "longitude": "n/a"},
        })

        assert offer.customer_address.address == "12 MG Road"
        assert offer.customer_address.latitude is None
        assert offer.customer_address.longitude is None
        assert offer.distance_from(12.0, 77.0) is None

    def test_coordinates_given_as_text(self):
        offer = JobOffer.from_payload({"id": "j", "customerAddress": {"latitude": "12.97", "longitude": "77.59"}})

        assert offer.customer_address.latitude == 12.97
        assert offer.customer_address.has_coordinates is True

    def test_numeric_text_fields_are_kept_as_text(self):
        offer = JobOffer.from_payload({"id": "j", "customerName": 42, "serviceType": ["plumber"]})

        assert offer.customer_name == "42"
        assert offer.service_type is None

    def test_invalid_payload_raises_package_error(self):
        with pytest.raises(ValidationError) as exc_info:
            JobOffer.from_payload({"id": "j", "customerAddress": {"address": {"line1": "12 MG Road"}}})

        assert exc_info.value.field == "payload"
        assert "customerAddress" in exc_info.value.message

    def test_distance_from_provider(self):
        offer = JobOffer.from_payload({
            "id": "j",
            "customerAddress": {"latitude": 12.9716, "longitude": 77.5946},
        })

        distance = offer.distance_from(12.9352, 77.6245)

        assert 4.5 < distance.distance_km < 5.5
        assert distance.distance_formatted.endswith("km")
        assert distance.eta_minutes == 11

    def test_distance_unknown_without_coordinates(self):
        assert JobOffer.from_payload({"id": "j"}).distance_from(12.0, 77.0) is None


class TestTimestamps:

    @pytest.mark.parametrize("value", [
        "2024-05-01T10:00:00Z",
        "2024-05-01T10:00:00+00:00",
        1714557600000,
        {"_seconds": 1714557600},
        datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc),
    ])
    def test_formats(self, value):
        assert parse_timestamp(value) == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "tomorrow", True, {"nanos": 1}])
    def test_unparseable(self, value):
        assert parse_timestamp(value) is None


class TestProviderProfile:

    def test_claim_fields(self):
        profile = ProviderProfile.from_any({
            "providerName": "Ravi",
            "phone": "900",
            "specialty": "electrician",
            "rating": "bad",
            "profileImage": "https://img/r.png",
        })

        fields = profile.claim_fields()

        assert fields["providerName"] == "Ravi"
        assert fields["providerPhone"] == "900"
        assert fields["providerSpecialization"] == "electrician"
        assert fields["providerRating"] == 0.0
        assert fields["providerImage"] == "https://img/r.png"
        assert fields["providerEmail"] == ""

    def test_display_name_fallback(self):
        assert ProviderProfile().display_name == "Provider"

    def test_numeric_phone_is_text(self):
        profile = ProviderProfile.from_any({"name": "Ravi", "phoneNumber": 9876543210})

        assert profile.phone == "9876543210"
        assert profile.claim_fields()["providerPhone"] == "9876543210"

    @pytest.mark.parametrize("value", [
        {"name": {"first": "Ravi"}},
        {"phoneNumber": ["9876543210"]},
        ["Ravi"],
    ])
    def test_invalid_profile_raises_package_error(self, value):
        with pytest.raises(DispatchError) as exc_info:
            ProviderProfile.from_any(value)

        assert isinstance(exc_info.value, ValidationError)
        assert exc_info.value.field == "provider_profile"


class TestJobRecord:

    def test_from_document(self):
        record = JobRecord.from_document("j1", {
            "doctorId": "p1",
            "patientId": "c1",
            "providerName": "Ravi",
            "rejectionReason": None,
            "version": 3,
        })

        assert record.status == "pending"
        assert record.provider_id == "p1"
        assert record.customer_id == "c1"
        assert record.provider_details == {"providerName": "Ravi"}
        assert record.version == 3

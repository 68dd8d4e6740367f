"""Tests for record kinds and the record codec."""

import json

import pytest

from entityledger.core.errors import DecodeError, UnknownKindError
from entityledger.core.records import (
    Activity,
    Record,
    User,
    build,
    decode,
    encode,
    get_kind,
    list_kinds,
    parse_payload,
)


class TestKindRegistry:
    def test_builtin_kinds_registered(self):
        assert "User" in list_kinds()
        assert "Activity" in list_kinds()

    def test_get_kind(self):
        assert get_kind("User") is User
        assert get_kind("Activity") is Activity

    def test_unknown_kind(self):
        with pytest.raises(UnknownKindError, match="Car"):
            get_kind("Car")


class TestRoundTrip:
    """decode(kind, encode(kind, fields)) gives back the same fields."""

    def test_user_round_trip(self, user_fields):
        record = decode("User", encode("User", user_fields))
        assert isinstance(record, User)
        assert record.to_fields() == user_fields

    def test_activity_round_trip(self, activity_fields):
        record = decode("Activity", encode("Activity", activity_fields))
        assert isinstance(record, Activity)
        assert record.to_fields() == activity_fields

    def test_partial_user_round_trip(self):
        fields = {"docType": "User", "id": "u1", "firstName": "Ana"}
        assert decode("User", encode("User", fields)).to_fields() == fields

    def test_record_equality(self, user_fields):
        record = build("User", user_fields)
        assert decode("User", encode("User", record)) == record


class TestEncode:
    def test_compact_canonical_bytes(self):
        data = encode("User", {"docType": "User", "id": "u1", "firstName": "Ana"})
        assert data == b'{"docType":"User","id":"u1","firstName":"Ana"}'

    def test_declared_field_order(self):
        data = encode("User", {"firstName": "Ana", "id": "u1", "docType": "User"})
        assert data == b'{"docType":"User","id":"u1","firstName":"Ana"}'

    def test_discriminant_injected(self):
        data = encode("Activity", {"id": "a1"})
        assert json.loads(data) == {"docType": "Activity", "id": "a1"}

    def test_python_field_names_accepted(self):
        data = encode("User", {"id": "u1", "first_name": "Ana"})
        assert json.loads(data)["firstName"] == "Ana"

    def test_unknown_fields_dropped(self):
        data = encode("Activity", {"id": "a1", "color": "red"})
        assert "color" not in json.loads(data)

    def test_empty_id_rejected(self):
        with pytest.raises(DecodeError, match="id"):
            encode("User", {"id": ""})

    def test_missing_id_rejected(self):
        with pytest.raises(DecodeError):
            encode("User", {"firstName": "Ana"})

    def test_discriminant_mismatch_rejected(self):
        with pytest.raises(DecodeError):
            encode("User", {"docType": "Activity", "id": "x"})

    def test_wrong_field_type_rejected(self):
        with pytest.raises(DecodeError, match="firstName"):
            encode("User", {"id": "u1", "firstName": 42})

    def test_keyword_built_record_carries_discriminant(self):
        data = encode("User", User(id="u1", first_name="Ana"))
        assert data == b'{"docType":"User","id":"u1","firstName":"Ana"}'

    def test_keyword_built_record_round_trip(self):
        record = Activity(id="a1")
        decoded = decode("Activity", encode("Activity", record))
        assert decoded.to_fields() == record.to_fields() == {"docType": "Activity", "id": "a1"}

    def test_to_fields_always_has_discriminant(self):
        assert User(id="u1").to_fields() == {"docType": "User", "id": "u1"}

    def test_record_of_other_kind_rejected(self):
        activity = build("Activity", {"id": "a1"})
        with pytest.raises(DecodeError, match="Activity"):
            encode("User", activity)

    def test_unknown_kind(self):
        with pytest.raises(UnknownKindError):
            encode("Car", {"id": "c1"})


class TestDecode:
    def test_unknown_kind_before_parsing(self):
        # Invalid JSON would be a DecodeError; the kind check must win
        with pytest.raises(UnknownKindError):
            decode("Car", b"not json at all")

    def test_malformed_json(self):
        with pytest.raises(DecodeError):
            decode("User", b"{not json")

    def test_empty_payload(self):
        with pytest.raises(DecodeError):
            decode("User", b"")

    def test_array_payload(self):
        with pytest.raises(DecodeError):
            decode("User", b"[]")

    def test_shape_of_other_kind(self):
        with pytest.raises(DecodeError):
            decode("Activity", b'{"docType":"User","id":"u1"}')


class TestParsePayload:
    def test_parses_json_text(self):
        record = parse_payload("User", '{"docType":"User","id":"u1","firstName":"Ana"}')
        assert record.key == "u1"
        assert record.first_name == "Ana"

    def test_invalid_json(self):
        with pytest.raises(DecodeError, match="not valid JSON"):
            parse_payload("User", "{oops")

    def test_non_object(self):
        with pytest.raises(DecodeError, match="JSON object"):
            parse_payload("User", '"just a string"')

    def test_unknown_kind_checked_first(self):
        with pytest.raises(UnknownKindError):
            parse_payload("Car", "{oops")


class TestRecord:
    def test_key_is_id(self):
        assert build("Activity", {"id": "a9"}).key == "a9"

    def test_records_are_immutable(self):
        record = build("User", {"id": "u1"})
        with pytest.raises(Exception):
            record.id = "u2"

    def test_base_model_is_record(self):
        assert issubclass(User, Record)
        assert issubclass(Activity, Record)

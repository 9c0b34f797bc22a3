"""Tests for entity extraction."""

import pytest

from alertswarm.models import Alert
from alertswarm.retrieval import extract_entities


def _alert(observables=None, raw_data=None) -> Alert:
    return Alert(id="a-1", title="t", observables=observables or [], raw_data=raw_data or {})


class TestExtractEntities:
    """Tests for extract_entities."""

    def test_observables_win_over_raw_data(self):
        alert = _alert(
            observables=[{"type": "ip", "value": "203.0.113.1"}, {"type": "hash", "value": "abc"}],
            raw_data={"dest_ip": "10.0.0.1", "file_hash": "def"},
        )

        entities = extract_entities(alert)

        assert entities.ip == "203.0.113.1"
        assert entities.hash == "abc"

    @pytest.mark.parametrize(
        "raw_data,expected",
        [
            ({"dest_ip": "1.1.1.1", "source_ip": "2.2.2.2"}, "1.1.1.1"),
            ({"source_ip": "2.2.2.2", "src_ip": "3.3.3.3"}, "2.2.2.2"),
            ({"src_ip": "3.3.3.3", "host_ip": "4.4.4.4"}, "3.3.3.3"),
            ({"host_ip": "4.4.4.4"}, "4.4.4.4"),
        ],
    )
    def test_ip_precedence(self, raw_data, expected):
        assert extract_entities(_alert(raw_data=raw_data)).ip == expected

    def test_username_and_hash_precedence(self):
        alert = _alert(raw_data={
            "user": "second",
            "user_name": "first",
            "username": "third",
            "sha256": "s256",
            "md5": "m5",
        })

        entities = extract_entities(alert)

        assert entities.username == "first"
        assert entities.hash == "s256"

    def test_user_observable(self):
        alert = _alert(observables=[{"type": "user", "value": "jdoe"}], raw_data={"user_name": "other"})

        assert extract_entities(alert).username == "jdoe"

    def test_blank_values_are_skipped(self):
        alert = _alert(
            observables=[{"type": "ip", "value": "  "}],
            raw_data={"dest_ip": "", "source_ip": None, "src_ip": "5.5.5.5"},
        )

        assert extract_entities(alert).ip == "5.5.5.5"

    def test_no_format_validation(self):
        alert = _alert(raw_data={"dest_ip": "not-an-ip"})

        assert extract_entities(alert).ip == "not-an-ip"

    def test_empty_alert(self):
        entities = extract_entities(_alert())

        assert entities.is_empty
        assert entities.values() == []

    def test_camel_case_payload(self):
        alert = Alert.model_validate({
            "id": "a-2",
            "tenantId": "t-1",
            "title": "x",
            "rawData": {"user_name": "alice", "md5": "m5"},
        })

        entities = extract_entities(alert)

        assert alert.tenant_id == "t-1"
        assert entities.username == "alice"
        assert entities.hash == "m5"

"""Unit tests for fingerprints, timestamp normalization and the competition record."""

from datetime import datetime, timedelta, timezone

import pytest

from services.shared.models import (
    CompetitionState,
    Phase,
    client_address,
    generate_fingerprint,
    isoformat,
    slugify,
    to_utc_datetime,
)

UTC = timezone.utc


class TestFingerprint:
    """Keyed voter fingerprint."""

    def test_same_inputs_same_token(self):
        first = generate_fingerprint("198.51.100.7", "Firefox", "salt")
        second = generate_fingerprint("198.51.100.7", "Firefox", "salt")

        assert first == second
        assert len(first) == 64
        int(first, 16)

    def test_salt_changes_token(self):
        assert generate_fingerprint("198.51.100.7", "Firefox", "salt-a") != \
            generate_fingerprint("198.51.100.7", "Firefox", "salt-b")

    def test_address_and_agent_both_matter(self):
        base = generate_fingerprint("198.51.100.7", "Firefox", "salt")

        assert generate_fingerprint("198.51.100.8", "Firefox", "salt") != base
        assert generate_fingerprint("198.51.100.7", "Chrome", "salt") != base

    def test_matches_hmac_of_address_and_agent(self):
        import hashlib
        import hmac

        expected = hmac.new(b"salt", b"198.51.100.7::Firefox", hashlib.sha256).hexdigest()

        assert generate_fingerprint("198.51.100.7", "Firefox", "salt") == expected

    @pytest.mark.parametrize("salt", [None, ""])
    def test_missing_salt_raises(self, salt):
        with pytest.raises(ValueError):
            generate_fingerprint("198.51.100.7", "Firefox", salt)


class TestClientAddress:
    """Forwarded-for preference."""

    def test_prefers_first_forwarded_entry(self):
        assert client_address("203.0.113.9, 10.0.0.1", "127.0.0.1") == "203.0.113.9"

    def test_falls_back_to_direct_address(self):
        assert client_address(None, "127.0.0.1") == "127.0.0.1"
        assert client_address("  ", "127.0.0.1") == "127.0.0.1"

    def test_empty_when_nothing_known(self):
        assert client_address(None, None) == ""


class TestToUtcDatetime:
    """One conversion for every timestamp shape."""

    expected = datetime(2025, 3, 14, 12, 0, tzinfo=UTC)

    def test_none_passes_through(self):
        assert to_utc_datetime(None) is None

    def test_naive_datetime_is_utc(self):
        assert to_utc_datetime(datetime(2025, 3, 14, 12, 0)) == self.expected

    def test_aware_datetime_is_converted(self):
        helsinki = timezone(timedelta(hours=2))
        value = datetime(2025, 3, 14, 14, 0, tzinfo=helsinki)

        result = to_utc_datetime(value)

        assert result == self.expected
        assert result.tzinfo == UTC

    def test_epoch_seconds_and_milliseconds(self):
        seconds = self.expected.timestamp()

        assert to_utc_datetime(seconds) == self.expected
        assert to_utc_datetime(int(seconds * 1000)) == self.expected

    @pytest.mark.parametrize("text", [
        "2025-03-14T12:00:00Z",
        "2025-03-14T12:00:00+00:00",
        "2025-03-14T14:00:00+02:00",
        "2025-03-14T12:00:00",
    ])
    def test_iso_strings(self, text):
        assert to_utc_datetime(text) == self.expected

    def test_store_native_objects(self):
        class ProtoTimestamp:
            def ToDatetime(self):
                return datetime(2025, 3, 14, 12, 0)

        class EpochLike:
            def timestamp(self):
                return datetime(2025, 3, 14, 12, 0, tzinfo=UTC).timestamp()

        assert to_utc_datetime(ProtoTimestamp()) == self.expected
        assert to_utc_datetime(EpochLike()) == self.expected

    @pytest.mark.parametrize("value", ["not a date", True, object()])
    def test_rejects_unknown_shapes(self, value):
        with pytest.raises(ValueError):
            to_utc_datetime(value)

    def test_isoformat_uses_z_suffix(self):
        assert isoformat(self.expected) == "2025-03-14T12:00:00Z"
        assert isoformat(None) is None


class TestCompetitionState:
    now = datetime(2025, 3, 14, 12, 0, tzinfo=UTC)

    def test_default_is_setup_without_end(self):
        state = CompetitionState()

        assert state.phase == Phase.SETUP
        assert state.end_time is None
        assert state.has_expired(self.now) is False
        assert state.time_remaining_ms(self.now) is None

    def test_end_time_equal_to_now_has_expired(self):
        state = CompetitionState(Phase.RUNNING, self.now)

        assert state.has_expired(self.now) is True
        assert state.time_remaining_ms(self.now) == 0

    def test_time_remaining_floors_at_zero(self):
        future = CompetitionState(Phase.RUNNING, self.now + timedelta(minutes=5))
        past = CompetitionState(Phase.RUNNING, self.now - timedelta(minutes=5))

        assert future.time_remaining_ms(self.now) == 300000
        assert past.time_remaining_ms(self.now) == 0


@pytest.mark.parametrize("name,slug", [
    ("Merge Conflict Maniacs", "merge-conflict-maniacs"),
    ("  Café Crème!! ", "cafe-creme"),
    ("404: Team Not Found", "404-team-not-found"),
    ("", ""),
])
def test_slugify(name, slug):
    assert slugify(name) == slug

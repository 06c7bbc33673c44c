"""
Tests — Capability negotiation

Covers:
  - Version string parsing
  - Lexicographic minimum-version comparison
  - Atomic vs fallback selection (incl. forced fallback, unknown version)
"""
import pytest

from job_queue.capabilities import (
    MIN_ATOMIC_VERSION, Capabilities, meets_minimum, negotiate, parse_version,
)
from models.schemas import PromotionPath


class TestParseVersion:

    @pytest.mark.parametrize("raw, expected", [
        ("7.2.4", (7, 2, 4)),
        ("2.6.0", (2, 6, 0)),
        ("6.0.0-rc1", (6, 0, 0)),
        ("5.0", (5, 0, 0)),
        ("3", (3, 0, 0)),
        ("255.255.255", (255, 255, 255)),
    ])
    def test_parses_reported_versions(self, raw, expected):
        assert parse_version(raw) == expected

    @pytest.mark.parametrize("raw", ["", None, "unknown", "v.x"])
    def test_unparseable_versions(self, raw):
        assert parse_version(raw) is None


class TestMeetsMinimum:

    def test_minimum_is_first_scripting_release(self):
        assert MIN_ATOMIC_VERSION == (2, 6, 0)

    def test_exact_minimum_qualifies(self):
        assert meets_minimum((2, 6, 0))

    def test_greater_major_always_qualifies(self):
        assert meets_minimum((3, 0, 0))
        assert meets_minimum((3, 0, 0), minimum=(2, 9, 9))

    def test_lower_minor_does_not_qualify(self):
        assert not meets_minimum((2, 5, 9))

    def test_greater_minor_ignores_patch(self):
        assert meets_minimum((2, 7, 0), minimum=(2, 6, 5))

    def test_equal_minor_requires_patch(self):
        assert not meets_minimum((2, 6, 4), minimum=(2, 6, 5))
        assert meets_minimum((2, 6, 5), minimum=(2, 6, 5))

    def test_lower_major_never_qualifies(self):
        assert not meets_minimum((1, 99, 99))


class TestNegotiate:

    @pytest.mark.parametrize("version", [(2, 6, 0), (3, 0, 0), (7, 2, 4)])
    def test_modern_servers_get_atomic_path(self, version):
        caps = negotiate(version)
        assert caps.atomic_promotion is True
        assert caps.path == PromotionPath.ATOMIC
        assert caps.server_version == version

    def test_old_server_gets_fallback(self):
        caps = negotiate((2, 5, 9))
        assert caps.atomic_promotion is False
        assert caps.path == PromotionPath.FALLBACK
        assert "2.6.0" in caps.reason

    def test_force_fallback_overrides_version(self):
        caps = negotiate((7, 2, 4), force_fallback=True)
        assert caps.atomic_promotion is False
        assert caps.reason == "fallback forced by options"

    def test_unknown_version_gets_fallback(self):
        caps = negotiate(None)
        assert caps.atomic_promotion is False
        assert caps.server_version is None

    def test_capabilities_are_immutable(self):
        caps = negotiate((7, 0, 0))
        with pytest.raises(AttributeError):
            caps.atomic_promotion = False

    def test_equality(self):
        assert negotiate((7, 0, 0)) == Capabilities(True, (7, 0, 0), "server supports scripting")

"""Tests for region to relay host resolution."""

from types import MappingProxyType

import pytest

from skillbridge.regions import REGION_ENDPOINTS, build_debug_url, resolve_region


class TestResolveRegion:
    """Static region table lookups."""

    def test_known_regions(self):
        assert resolve_region("NA") == "bob-dispatch-prod-na.amazon.com"
        assert resolve_region("FE") == "bob-dispatch-prod-fe.amazon.com"
        assert resolve_region("EU") == "bob-dispatch-prod-eu.amazon.com"

    def test_hosts_are_distinct(self):
        hosts = {resolve_region(code) for code in ("NA", "FE", "EU")}
        assert len(hosts) == 3

    @pytest.mark.parametrize("code", ["zz", "", "na", "US"])
    def test_unknown_region_is_empty(self, code):
        assert resolve_region(code) == ""

    def test_injected_table(self):
        endpoints = MappingProxyType({"LOCAL": "localhost:8443"})
        assert resolve_region("LOCAL", endpoints) == "localhost:8443"
        assert resolve_region("NA", endpoints) == ""

    def test_default_table_is_read_only(self):
        with pytest.raises(TypeError):
            REGION_ENDPOINTS["XX"] = "example.com"


class TestDebugUrl:
    def test_builds_development_stage_url(self):
        assert build_debug_url("bob-dispatch-prod-na.amazon.com", "amzn1.ask.skill.1") == (
            "wss://bob-dispatch-prod-na.amazon.com/v1/skills/amzn1.ask.skill.1"
            "/stages/development/connectCustomDebugEndpoint"
        )

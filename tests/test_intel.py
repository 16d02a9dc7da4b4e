"""Unit tests for the MunicipalIntel facade."""
from __future__ import annotations

import httpx
import pytest

from municipal_intel.errors import (
    DuplicateSourceError,
    SourceNotFoundError,
    UnknownDatasetError,
    UnsupportedAccessMethodError,
)
from municipal_intel.intel import MunicipalIntel, create_municipal_intel
from municipal_intel.models import SearchRequest, SortField

SF_PERMITS = "/resource/i98e-djp9.json"


@pytest.fixture
def intel(settings, registry):
    return MunicipalIntel(settings=settings, registry=registry)


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_search_routes_to_source(intel, mock_sf, sf_permit_row):
    route = mock_sf.get(SF_PERMITS).mock(
        return_value=httpx.Response(200, json=[sf_permit_row])
    )

    response = await intel.search(SearchRequest(municipality_id="sf", limit=2))

    assert route.call_count == 1
    assert response.projects[0].source == "sf"


@pytest.mark.asyncio
async def test_search_defaults_to_first_ready_source(intel, mock_sf):
    route = mock_sf.get(SF_PERMITS).mock(return_value=httpx.Response(200, json=[]))

    response = await intel.search(SearchRequest())

    assert route.call_count == 1
    assert response.total == 0


@pytest.mark.asyncio
async def test_search_unknown_municipality(intel):
    with pytest.raises(SourceNotFoundError):
        await intel.search(SearchRequest(municipality_id="atlantis"))


@pytest.mark.asyncio
async def test_search_portal_source_unsupported(intel):
    intel.register_source(
        {
            "id": "jax",
            "name": "Jacksonville",
            "state": "FL",
            "type": "portal",
            "priority": "medium",
            "portal": {"url": "https://jaxepics.coj.net", "system": "MyJax"},
        }
    )
    with pytest.raises(UnsupportedAccessMethodError):
        await intel.search(SearchRequest(municipality_id="jax"))


@pytest.mark.asyncio
async def test_get_project(intel, mock_sf, sf_permit_row):
    mock_sf.get(SF_PERMITS).mock(return_value=httpx.Response(200, json=[sf_permit_row]))

    project = await intel.get_project("sf", "sf-202401150001")

    assert project.id == "sf-202401150001"


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_health_check_recorded_in_overlay(intel, mock_sf):
    mock_sf.get(SF_PERMITS).mock(return_value=httpx.Response(401))

    result = await intel.health_check("sf")

    assert result.status == "unhealthy"
    source = intel.registry.get_source("sf")
    assert source.last_error == "Authentication failed"
    assert source.last_checked == result.last_checked.isoformat()


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def test_available_municipalities(intel):
    municipalities = {m.id: m for m in intel.get_available_municipalities()}
    assert set(municipalities) == {"sf", "la", "nyc"}
    assert [d.id for d in municipalities["sf"].datasets] == [
        "buildingPermits",
        "planningApplications",
    ]
    assert municipalities["nyc"].state == "NY"


def test_capabilities_reflect_mappings(intel):
    sf = intel.get_search_capabilities("sf")
    assert "min_value" in sf.supported_filters
    assert SortField.value in sf.supported_sorts
    assert sf.limitations == []

    nyc = intel.get_search_capabilities("nyc")
    assert "min_value" not in nyc.supported_filters
    assert "submit_date_from" not in nyc.supported_filters
    assert SortField.value not in nyc.supported_sorts
    assert SortField.submit_date in nyc.supported_sorts
    assert nyc.limitations == [
        "filing_date stores text dates - submit_date_from/submit_date_to filters not supported",
        "No value field available - min_value/max_value filters not supported",
        "issuance_date stores text dates - approval_date_from/approval_date_to filters not supported",
    ]


def test_capabilities_for_named_dataset(intel):
    caps = intel.get_search_capabilities("nyc", "dobNowBuildApproved")
    assert "max_value" in caps.supported_filters


def test_dataset_schema(intel):
    schema = {f.name: f for f in intel.get_dataset_schema("sf")}
    assert schema["revised_cost"].type == "number"
    assert schema["revised_cost"].searchable is True
    assert schema["revised_cost"].description == "Searchable field mapped to: value"
    assert schema["issued_date"].type == "date"
    assert schema["block"].type == "string"
    assert schema["block"].searchable is False
    assert schema["block"].description is None


def test_dataset_schema_unknown_dataset(intel):
    with pytest.raises(UnknownDatasetError):
        intel.get_dataset_schema("sf", "zoning")


def test_get_sources_filters(intel):
    assert [s.id for s in intel.get_sources(state="ca")] == ["sf", "la"]
    assert intel.get_sources(type="portal") == []
    assert len(intel.get_sources(priority="high", enabled=True)) == 3


# ---------------------------------------------------------------------------
# Registry management
# ---------------------------------------------------------------------------


def test_register_and_unregister(intel):
    with pytest.raises(DuplicateSourceError):
        intel.register_source(
            {"id": "sf", "name": "Dup", "state": "CA", "type": "portal", "priority": "low"}
        )
    intel.register_source(
        {"id": "oak", "name": "Oakland", "state": "CA", "type": "portal", "priority": "low"}
    )
    assert intel.is_builtin_source("sf")
    assert not intel.is_builtin_source("oak")
    assert intel.get_registry_info().total_sources == 4
    assert intel.unregister_source("oak") is True
    assert intel.unregister_source("sf") is False


def test_audit_builtins_clean(intel):
    assert intel.audit() == []


def test_set_socrata_token(intel):
    intel.set_socrata_token("tok")
    assert intel.factory.settings.socrata_app_token == "tok"


def test_create_municipal_intel_overrides():
    intel = create_municipal_intel(socrata_app_token="tok", max_retries=1)
    assert intel.settings.socrata_app_token == "tok"
    assert intel.settings.max_retries == 1

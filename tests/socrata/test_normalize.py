"""Unit tests for raw row → MunicipalProject normalisation."""
from __future__ import annotations

from datetime import datetime, timezone

from municipal_intel.socrata.normalize import DEFAULT_DESCRIPTION, normalize
from municipal_intel.sources.models import DatasetSpec

URL_BASE = "https://municipal-intel.lineai.com/projects"


def test_sf_permit_normalised(sf, sf_permit_row):
    dataset = sf.api.datasets["buildingPermits"]
    project = normalize(sf_permit_row, sf, "buildingPermits", dataset, url_base=URL_BASE)

    assert project.id == "sf-202401150001"
    assert project.source == "sf"
    assert project.url == f"{URL_BASE}/sf/buildingPermits/202401150001"
    assert project.description.startswith(
        "additions alterations or repairs at 100 Market St, San Francisco, CA, 94105"
    )
    assert "Filed January 15, 2024" in project.description
    assert "Estimated cost $125,000" in project.description


def test_raw_data_is_verbatim(sf, sf_permit_row):
    dataset = sf.api.datasets["buildingPermits"]
    project = normalize(sf_permit_row, sf, "buildingPermits", dataset)
    assert project.raw_data == sf_permit_row
    assert project.raw_data is not sf_permit_row
    assert project.url is None


def test_nyc_job_type_expanded(nyc, nyc_dob_row):
    dataset = nyc.api.datasets["dobPermitIssuance"]
    project = normalize(nyc_dob_row, nyc, "dobPermitIssuance", dataset)
    assert project.id == "nyc-3715048"
    assert project.description.startswith("Alteration at 350 5 AVENUE, Manhattan, NY, 10118")
    assert "Owner: EMPIRE STATE REALTY" in project.description


def test_malformed_date_falls_back(sf, sf_permit_row):
    """A bad embedded date never escapes; the description falls back."""
    row = dict(sf_permit_row, permit_creation_date="31/31/2024 noon")
    dataset = sf.api.datasets["buildingPermits"]
    project = normalize(row, sf, "buildingPermits", dataset)
    assert project.description == "San Francisco Record"
    assert project.raw_data["permit_creation_date"] == "31/31/2024 noon"


def test_missing_id_uses_sentinel(sf, sf_permit_row):
    row = {k: v for k, v in sf_permit_row.items() if k != "permit_number"}
    dataset = sf.api.datasets["buildingPermits"]
    assert normalize(row, sf, "buildingPermits", dataset).id == "sf-unknown"


def test_no_describe_function(sf):
    dataset = DatasetSpec(endpoint="/resource/x.json", name="X")
    project = normalize({}, sf, "x", dataset)
    assert project.description == DEFAULT_DESCRIPTION
    assert project.id == "sf-unknown"


def test_empty_description_falls_back(sf):
    dataset = DatasetSpec(endpoint="/resource/x.json", name="X", describe=lambda r: "")
    assert normalize({}, sf, "x", dataset).description == "San Francisco Record"


def test_last_updated_is_construction_time(sf, sf_permit_row):
    now = datetime(2025, 1, 1, tzinfo=timezone.utc)
    dataset = sf.api.datasets["buildingPermits"]
    project = normalize(sf_permit_row, sf, "buildingPermits", dataset, now=now)
    assert project.last_updated == now

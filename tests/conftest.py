"""Shared test fixtures for municipal data access tests."""
import pytest
import respx

from municipal_intel.config import Settings
from municipal_intel.sources.registry import SourceRegistry

SF_BASE_URL = "https://data.sfgov.org"
NYC_BASE_URL = "https://data.cityofnewyork.us"

SF_PERMITS = "/resource/i98e-djp9.json"
NYC_DOB_PERMITS = "/resource/ipu4-2q9a.json"


@pytest.fixture
def settings():
    """Settings with no backoff delay and no token unless a test sets one."""
    return Settings(
        socrata_app_token=None,
        max_retries=2,
        retry_base_delay=0,
        request_timeout=5.0,
        _env_file=None,
    )


@pytest.fixture
def registry():
    return SourceRegistry()


@pytest.fixture
def sf(registry):
    return registry.require_source("sf")


@pytest.fixture
def nyc(registry):
    return registry.require_source("nyc")


@pytest.fixture
def mock_sf():
    """respx mock transport for the San Francisco portal."""
    with respx.mock(base_url=SF_BASE_URL, assert_all_called=False) as mock:
        yield mock


@pytest.fixture
def mock_nyc():
    """respx mock transport for the New York City portal."""
    with respx.mock(base_url=NYC_BASE_URL, assert_all_called=False) as mock:
        yield mock


@pytest.fixture
def sf_permit_row():
    """Building permit row as returned by data.sfgov.org."""
    return {
        "permit_number": "202401150001",
        "permit_type_definition": "additions alterations or repairs",
        "permit_creation_date": "2024-01-15T00:00:00.000",
        "issued_date": "2024-03-01T00:00:00.000",
        "description": "Kitchen remodel",
        "status": "issued",
        "street_number": "100",
        "street_name": "Market",
        "street_suffix": "St",
        "zipcode": "94105",
        "revised_cost": "125000",
    }


@pytest.fixture
def nyc_dob_row():
    """DOB permit issuance row as returned by data.cityofnewyork.us."""
    return {
        "permit_si_no": "3715048",
        "job_type": "A2",
        "permit_type": "EW",
        "permit_status": "ISSUED",
        "filing_date": "01/15/2024",
        "issuance_date": "02/01/2024",
        "house__": "350",
        "street_name": "5 AVENUE",
        "borough": "MANHATTAN",
        "zip_code": "10118",
        "owner_s_business_name": "EMPIRE STATE REALTY",
    }

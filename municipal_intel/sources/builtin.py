"""Built-in municipal data sources shipped with the package.

Field lists are the union of each portal's column dump and fields observed in
sample rows; several columns are only present on some rows. Mappings point at
the column carrying each concept. Value columns are text on every Socrata
portal and are cast in queries.

Each dataset also carries its derivation functions (``full_address`` and
``describe``). They may raise on malformed rows; the normaliser catches that
and substitutes a fallback description.

NYC DOB permit issuance stores ``filing_date`` and ``issuance_date`` as
``MM/DD/YYYY`` text. SoQL compares such columns lexically, so date range
filters on them are skipped with an adjustment, and sorting by them orders
by month first.
"""
from __future__ import annotations

from typing import Any, Dict

from municipal_intel.sources.fields import format_date, format_money, join, text
from municipal_intel.sources.models import (
    ApiAuth,
    ApiConfig,
    ApiType,
    Concept,
    DatasetSpec,
    Priority,
    RateLimit,
    RegistryData,
    SourceDescriptor,
    SourceType,
    StateSources,
)

Record = Dict[str, Any]


# ---------------------------------------------------------------------------
# San Francisco
# ---------------------------------------------------------------------------


def sf_permit_address(r: Record) -> str:
    street = join(
        text(r, "street_number"),
        text(r, "street_name"),
        text(r, "street_suffix"),
    )
    if text(r, "unit"):
        street = f"{street} Unit {text(r, 'unit')}"
    return join(street or "Unknown Address", "San Francisco, CA", text(r, "zipcode"), sep=", ")


def sf_permit_description(r: Record) -> str:
    kind = text(r, "permit_type_definition") or "Building permit"
    parts = [f"{kind} at {sf_permit_address(r)}"]
    if text(r, "description"):
        parts.append(text(r, "description"))
    if text(r, "status"):
        parts.append(f"Status: {text(r, 'status')}")
    filed = format_date(r.get("permit_creation_date") or r.get("filed_date"))
    if filed:
        parts.append(f"Filed {filed}")
    issued = format_date(r.get("issued_date"))
    if issued:
        parts.append(f"Issued {issued}")
    cost = format_money(r.get("revised_cost") or r.get("estimated_cost"))
    if cost:
        parts.append(f"Estimated cost {cost}")
    if text(r, "proposed_use"):
        parts.append(f"Proposed use: {text(r, 'proposed_use')}")
    return ". ".join(parts) + "."


def sf_planning_address(r: Record) -> str:
    return join(text(r, "project_address") or "Unknown Address", "San Francisco, CA", sep=", ")


def sf_planning_description(r: Record) -> str:
    name = text(r, "project_name") or "Planning application"
    parts = [f"{name} at {sf_planning_address(r)}"]
    if text(r, "project_description"):
        parts.append(text(r, "project_description"))
    if text(r, "case_number"):
        parts.append(f"Case {text(r, 'case_number')}")
    filed = format_date(r.get("filed_date"))
    if filed:
        parts.append(f"Filed {filed}")
    return ". ".join(parts) + "."


SAN_FRANCISCO = SourceDescriptor(
    id="sf",
    name="San Francisco",
    state="CA",
    type=SourceType.api,
    api=ApiConfig(
        type=ApiType.socrata,
        base_url="https://data.sfgov.org",
        datasets={
            "buildingPermits": DatasetSpec(
                endpoint="/resource/i98e-djp9.json",
                name="Building Permits",
                known_fields=[
                    "adu",
                    "application_submission_method",
                    "approved_date",
                    "block",
                    "completed_date",
                    "data_as_of",
                    "data_loaded_at",
                    "description",
                    "estimated_cost",
                    "existing_construction_type",
                    "existing_construction_type_description",
                    "existing_occupancy",
                    "existing_units",
                    "existing_use",
                    "filed_date",
                    "fire_only_permit",
                    "issued_date",
                    "last_permit_activity_date",
                    "location",
                    "lot",
                    "neighborhoods_analysis_boundaries",
                    "number_of_existing_stories",
                    "number_of_proposed_stories",
                    "permit_creation_date",
                    "permit_number",
                    "permit_type",
                    "permit_type_definition",
                    "plansets",
                    "point_source",
                    "primary_address_flag",
                    "proposed_construction_type",
                    "proposed_construction_type_description",
                    "proposed_occupancy",
                    "proposed_units",
                    "proposed_use",
                    "record_id",
                    "revised_cost",
                    "status",
                    "status_date",
                    "street_name",
                    "street_number",
                    "street_suffix",
                    "supervisor_district",
                    "unit",
                    "zipcode",
                ],
                field_mappings={
                    Concept.submit_date: "permit_creation_date",
                    Concept.approval_date: "issued_date",
                    Concept.value: "revised_cost",
                    Concept.address: "street_name",
                    Concept.id: "permit_number",
                    Concept.status: "status",
                    Concept.description: "description",
                    Concept.title: "description",
                },
                full_address=sf_permit_address,
                describe=sf_permit_description,
            ),
            "planningApplications": DatasetSpec(
                endpoint="/resource/6zqd-wh5d.json",
                name="Planning Department Project Applications",
                known_fields=[
                    "record_id",
                    "project_name",
                    "project_address",
                    "project_description",
                    "case_number",
                    "filed_date",
                ],
                field_mappings={
                    Concept.submit_date: "filed_date",
                    Concept.id: "record_id",
                    Concept.title: "project_name",
                    Concept.address: "project_address",
                    Concept.description: "project_description",
                },
                full_address=sf_planning_address,
                describe=sf_planning_description,
            ),
        },
        default_dataset="buildingPermits",
        authentication=ApiAuth(
            required=False, recommended=True, type="app_token", header="X-App-Token"
        ),
        rate_limit=RateLimit(with_token=1000, without_token="shared", period="hour"),
    ),
    urls={
        "planning": "https://sfplanning.org/project-applications",
        "building": "https://sfdbi.org/building-permits",
    },
    priority=Priority.high,
)


# ---------------------------------------------------------------------------
# Los Angeles
# ---------------------------------------------------------------------------


def la_permit_address(r: Record) -> str:
    street = join(
        text(r, "address_start"),
        text(r, "street_direction"),
        text(r, "street_name"),
        text(r, "street_suffix"),
    )
    return join(street or "Unknown Address", "Los Angeles, CA", text(r, "zip_code"), sep=", ")


def la_permit_description(r: Record) -> str:
    kind = join(text(r, "permit_type"), text(r, "permit_sub_type"), sep=" - ") or "Building permit"
    parts = [f"{kind} at {la_permit_address(r)}"]
    if text(r, "work_description"):
        parts.append(text(r, "work_description"))
    if text(r, "latest_status"):
        parts.append(f"Status: {text(r, 'latest_status')}")
    issued = format_date(r.get("issue_date"))
    if issued:
        parts.append(f"Issued {issued}")
    valuation = format_money(r.get("valuation"))
    if valuation:
        parts.append(f"Valuation {valuation}")
    contractor = text(r, "contractors_business_name")
    if contractor:
        parts.append(f"Contractor: {contractor}")
    return ". ".join(parts) + "."


LOS_ANGELES = SourceDescriptor(
    id="la",
    name="Los Angeles",
    state="CA",
    type=SourceType.api,
    api=ApiConfig(
        type=ApiType.socrata,
        base_url="https://data.lacity.org",
        datasets={
            "buildingPermits": DatasetSpec(
                endpoint="/resource/xnhu-aczu.json",
                name="LA BUILD PERMITS",
                known_fields=[
                    "address_end",
                    "address_start",
                    "applicant_first_name",
                    "applicant_last_name",
                    "assessor_book",
                    "assessor_page",
                    "assessor_parcel",
                    "block",
                    "census_tract",
                    "contractor_address",
                    "contractor_city",
                    "contractor_state",
                    "contractors_business_name",
                    "floor_area_l_a_building_code_definition",
                    "floor_area_l_a_zoning_code_definition",
                    "initiating_office",
                    "issue_date",
                    "latest_status",
                    "license",
                    "license_expiration_date",
                    "license_type",
                    "location_1",
                    "lot",
                    "of_residential_dwelling_units",
                    "of_stories",
                    "pcis_permit",
                    "permit_category",
                    "permit_sub_type",
                    "permit_type",
                    "principal_first_name",
                    "principal_last_name",
                    "principal_middle_name",
                    "reference_old_permit",
                    "status_date",
                    "street_direction",
                    "street_name",
                    "street_suffix",
                    "tract",
                    "valuation",
                    "work_description",
                    "zip_code",
                    "zone",
                ],
                field_mappings={
                    Concept.submit_date: "issue_date",
                    Concept.approval_date: "issue_date",
                    Concept.value: "valuation",
                    Concept.address: "street_name",
                    Concept.id: "pcis_permit",
                    Concept.status: "latest_status",
                    Concept.description: "work_description",
                    Concept.title: "work_description",
                },
                full_address=la_permit_address,
                describe=la_permit_description,
            ),
        },
        default_dataset="buildingPermits",
    ),
    priority=Priority.high,
)


# ---------------------------------------------------------------------------
# New York City
# ---------------------------------------------------------------------------

_NYC_JOB_TYPES = {
    "A1": "Major alteration",
    "A2": "Alteration",
    "A3": "Minor alteration",
    "NB": "New building",
    "DM": "Demolition",
    "SG": "Sign",
}


def nyc_dob_address(r: Record) -> str:
    street = join(text(r, "house__"), text(r, "street_name"))
    return join(street or "Unknown Address", text(r, "borough").title(), "NY", text(r, "zip_code"), sep=", ")


def nyc_dob_description(r: Record) -> str:
    job_type = text(r, "job_type")
    kind = _NYC_JOB_TYPES.get(job_type.upper(), job_type or "DOB permit")
    parts = [f"{kind} at {nyc_dob_address(r)}"]
    if text(r, "permit_type"):
        parts.append(f"Permit type {text(r, 'permit_type')}")
    if text(r, "permit_status"):
        parts.append(f"Status: {text(r, 'permit_status')}")
    filed = format_date(r.get("filing_date"))
    if filed:
        parts.append(f"Filed {filed}")
    issued = format_date(r.get("issuance_date"))
    if issued:
        parts.append(f"Issued {issued}")
    owner = text(r, "owner_s_business_name") or join(
        text(r, "owner_s_first_name"), text(r, "owner_s_last_name")
    )
    if owner:
        parts.append(f"Owner: {owner}")
    return ". ".join(parts) + "."


def nyc_dob_now_address(r: Record) -> str:
    street = join(text(r, "house_no"), text(r, "street_name"))
    return join(street or "Unknown Address", text(r, "borough").title(), "NY", sep=", ")


def nyc_dob_now_description(r: Record) -> str:
    kind = text(r, "work_type") or "DOB NOW permit"
    parts = [f"{kind} at {nyc_dob_now_address(r)}"]
    if text(r, "job_description"):
        parts.append(text(r, "job_description"))
    if text(r, "work_permit"):
        parts.append(f"Permit {text(r, 'work_permit')}")
    issued = format_date(r.get("issued_date"))
    if issued:
        parts.append(f"Issued {issued}")
    cost = format_money(r.get("estimated_job_costs"))
    if cost:
        parts.append(f"Estimated cost {cost}")
    applicant = text(r, "applicant_business_name")
    if applicant:
        parts.append(f"Applicant: {applicant}")
    return ". ".join(parts) + "."


def nyc_major_project_address(r: Record) -> str:
    return join(text(r, "borough").title() or "New York", "NY", sep=", ")


def nyc_major_project_description(r: Record) -> str:
    name = text(r, "project_name") or "Major construction project"
    parts = [f"{name} in {nyc_major_project_address(r)}"]
    if text(r, "project_description"):
        parts.append(text(r, "project_description"))
    started = format_date(r.get("project_start_date"))
    if started:
        parts.append(f"Started {started}")
    completes = format_date(r.get("expected_completion_date"))
    if completes:
        parts.append(f"Expected completion {completes}")
    if text(r, "total_units"):
        parts.append(f"{text(r, 'total_units')} units")
    return ". ".join(parts) + "."


NEW_YORK_CITY = SourceDescriptor(
    id="nyc",
    name="New York City",
    state="NY",
    type=SourceType.api,
    api=ApiConfig(
        type=ApiType.socrata,
        base_url="https://data.cityofnewyork.us",
        datasets={
            "dobPermitIssuance": DatasetSpec(
                endpoint="/resource/ipu4-2q9a.json",
                name="DOB Permit Issuance",
                known_fields=[
                    "bin__",
                    "bldg_type",
                    "block",
                    "borough",
                    "community_board",
                    "dobrundate",
                    "expiration_date",
                    "filing_date",
                    "filing_status",
                    "gis_census_tract",
                    "gis_council_district",
                    "gis_latitude",
                    "gis_longitude",
                    "gis_nta_name",
                    "house__",
                    "issuance_date",
                    "job__",
                    "job_doc___",
                    "job_start_date",
                    "job_type",
                    "lot",
                    "non_profit",
                    "owner_s_business_name",
                    "owner_s_business_type",
                    "owner_s_first_name",
                    "owner_s_last_name",
                    "owner_s_phone__",
                    "permit_sequence__",
                    "permit_si_no",
                    "permit_status",
                    "permit_subtype",
                    "permit_type",
                    "permittee_s_business_name",
                    "permittee_s_first_name",
                    "permittee_s_last_name",
                    "permittee_s_license__",
                    "permittee_s_license_type",
                    "permittee_s_phone__",
                    "self_cert",
                    "street_name",
                    "work_type",
                    "zip_code",
                ],
                field_mappings={
                    Concept.submit_date: "filing_date",
                    Concept.approval_date: "issuance_date",
                    Concept.address: "street_name",
                    Concept.id: "permit_si_no",
                    Concept.status: "permit_status",
                    Concept.title: "job_type",
                },
                text_date_fields=["filing_date", "issuance_date"],
                full_address=nyc_dob_address,
                describe=nyc_dob_description,
            ),
            "dobNowBuildApproved": DatasetSpec(
                endpoint="/resource/rbx6-tga4.json",
                name="DOB NOW: Build - Approved Permits",
                known_fields=[
                    "applicant_business_address",
                    "applicant_business_name",
                    "applicant_first_name",
                    "applicant_last_name",
                    "applicant_license",
                    "applicant_middle_name",
                    "approved_date",
                    "bin",
                    "block",
                    "borough",
                    "c_b_no",
                    "estimated_job_costs",
                    "expired_date",
                    "filing_reason",
                    "filing_representative_business_name",
                    "filing_representative_first_name",
                    "filing_representative_last_name",
                    "house_no",
                    "issued_date",
                    "job_description",
                    "job_filing_number",
                    "lot",
                    "owner_business_name",
                    "owner_name",
                    "permittee_s_license_type",
                    "street_name",
                    "work_on_floor",
                    "work_permit",
                    "work_type",
                ],
                field_mappings={
                    Concept.submit_date: "issued_date",
                    Concept.approval_date: "approved_date",
                    Concept.value: "estimated_job_costs",
                    Concept.address: "street_name",
                    Concept.id: "job_filing_number",
                    Concept.status: "work_permit",
                    Concept.title: "job_description",
                    Concept.applicant: "applicant_business_name",
                },
                full_address=nyc_dob_now_address,
                describe=nyc_dob_now_description,
            ),
            "activeMajorProjects": DatasetSpec(
                endpoint="/resource/n5mv-nfpy.json",
                name="Active Major Construction Projects",
                known_fields=[
                    "project_id",
                    "project_name",
                    "borough",
                    "project_description",
                    "project_start_date",
                    "expected_completion_date",
                    "total_construction_floor_area_sq_ft",
                    "total_units",
                    "construction_type",
                ],
                field_mappings={
                    Concept.submit_date: "project_start_date",
                    Concept.id: "project_id",
                    Concept.title: "project_name",
                    Concept.description: "project_description",
                },
                full_address=nyc_major_project_address,
                describe=nyc_major_project_description,
            ),
        },
        default_dataset="dobPermitIssuance",
        authentication=ApiAuth(required=False, recommended=True, type="app_token"),
    ),
    urls={
        "dob": "https://www1.nyc.gov/site/buildings/index.page",
        "planning": "https://www1.nyc.gov/site/planning/index.page",
    },
    priority=Priority.high,
)


BUILTIN_REGISTRY = RegistryData(
    version="1.0.0",
    last_updated="2025-01-30",
    sources={
        "ca": StateSources(name="California", municipalities=[SAN_FRANCISCO, LOS_ANGELES]),
        "ny": StateSources(name="New York", municipalities=[NEW_YORK_CITY]),
        "fl": StateSources(name="Florida", municipalities=[]),
    },
)

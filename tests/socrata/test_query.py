"""Unit tests for SearchRequest → SoQL translation."""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from municipal_intel.errors import InvalidDateParameterError, MissingApiConfigError, UnknownDatasetError
from municipal_intel.models import SearchRequest, SortField, SortOrder, coerce_instant
from municipal_intel.socrata.query import (
    FALLBACK_ORDER_FIELD,
    SoQLQuery,
    format_timestamp,
    id_query,
    quote,
    resolve_dataset,
    translate,
)
from municipal_intel.sources.models import SourceDescriptor


# ---------------------------------------------------------------------------
# Value filters
# ---------------------------------------------------------------------------


def test_value_filter_is_numeric_cast(sf):
    """A mapped text value column is compared as a number, with no adjustment."""
    query, adjustments = translate(
        SearchRequest(municipality_id="sf", min_value=50000, limit=2), sf
    )
    assert query.where == "revised_cost::number >= 50000"
    assert query.limit == 2
    assert adjustments == []


def test_value_filter_skipped_without_mapping(nyc):
    """Datasets without a value mapping drop the filter and say so once."""
    query, adjustments = translate(SearchRequest(municipality_id="nyc", min_value=100000), nyc)
    assert query.where is None
    assert len(adjustments) == 1
    assert "value" in adjustments[0]
    assert "skip" in adjustments[0].lower()
    assert adjustments[0].startswith("NYC: Skipped min_value filter")


def test_value_range_and_fraction(sf):
    query, _ = translate(SearchRequest(min_value=1000.5, max_value=2000000), sf)
    assert query.where == "revised_cost::number >= 1000.5 AND revised_cost::number <= 2000000"


def test_each_skipped_filter_reported(sf):
    request = SearchRequest(
        dataset_id="planningApplications",
        min_value=1,
        max_value=2,
        statuses=["filed"],
        approval_date_from="2024-01-01",
    )
    query, adjustments = translate(request, sf)
    assert query.where is None
    assert len(adjustments) == 4
    assert all("planningApplications" in a for a in adjustments)


# ---------------------------------------------------------------------------
# Other filters
# ---------------------------------------------------------------------------


def test_statuses_addresses_and_keywords(sf):
    request = SearchRequest(
        statuses=["issued", "filed"],
        addresses=["Market", "O'Farrell"],
        keywords=["solar", "roof"],
    )
    query, adjustments = translate(request, sf)
    assert query.where == (
        "status in ('issued', 'filed') AND "
        "(upper(street_name) like upper('%Market%') OR upper(street_name) like upper('%O''Farrell%'))"
    )
    assert query.q == "solar roof"
    assert adjustments == []


def test_date_filters_have_no_timezone_suffix(sf):
    request = SearchRequest(
        submit_date_from=datetime(2024, 1, 1, 8, 0, tzinfo=timezone(timedelta(hours=-8))),
        submit_date_to="2024-06-30T00:00:00Z",
        approval_date_from=date(2024, 2, 1),
    )
    query, _ = translate(request, sf)
    assert query.where == (
        "permit_creation_date >= '2024-01-01T16:00:00.000' AND "
        "permit_creation_date <= '2024-06-30T00:00:00.000' AND "
        "issued_date >= '2024-02-01T00:00:00.000'"
    )
    assert "Z" not in query.where


def test_translation_is_deterministic(sf):
    request = SearchRequest(min_value=5, statuses=["issued"], keywords=["deck"])
    assert translate(request, sf) == translate(request, sf)


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("value", ["not-a-date", "2024-13-45", ["2024-01-01"], 20240101])
def test_invalid_dates_rejected(value):
    with pytest.raises(InvalidDateParameterError) as exc_info:
        coerce_instant(value, "submit_date_from")
    assert exc_info.value.param == "submit_date_from"


@pytest.mark.parametrize("bound", ["min_value", "max_value"])
@pytest.mark.parametrize("value", [float("inf"), float("nan")])
def test_non_finite_value_bounds_rejected(bound, value):
    with pytest.raises(ValidationError):
        SearchRequest(**{bound: value})


def test_invalid_date_rejected_by_request():
    with pytest.raises(InvalidDateParameterError):
        SearchRequest(submit_date_from="yesterday-ish")


def test_format_timestamp_keeps_milliseconds():
    value = datetime(2024, 5, 6, 7, 8, 9, 123456)
    assert format_timestamp(value, "submit_date_to") == "2024-05-06T07:08:09.123"


def test_invalid_date_rejected_before_wire(sf):
    """A date that slipped past model validation still fails translation."""
    request = SearchRequest.model_construct(submit_date_from="garbage")
    with pytest.raises(InvalidDateParameterError):
        translate(request, sf)


# ---------------------------------------------------------------------------
# Sorting, paging, datasets
# ---------------------------------------------------------------------------


def test_default_sort_submit_date_desc(sf):
    query, _ = translate(SearchRequest(), sf)
    assert query.order == "permit_creation_date desc"
    assert query.offset == 0
    assert query.limit == 100


def test_sort_falls_back_to_created_at(nyc):
    query, adjustments = translate(
        SearchRequest(sort_by=SortField.value, sort_order=SortOrder.asc), nyc
    )
    assert query.order == f"{FALLBACK_ORDER_FIELD} asc"
    assert adjustments == []


def test_unknown_dataset_lists_valid(sf):
    with pytest.raises(UnknownDatasetError) as exc_info:
        translate(SearchRequest(dataset_id="zoning"), sf)
    assert exc_info.value.valid == ["buildingPermits", "planningApplications"]
    assert "buildingPermits" in str(exc_info.value)


def test_resolve_dataset_requires_api():
    source = SourceDescriptor(id="x", name="X", state="TX", type="portal", priority="low")
    with pytest.raises(MissingApiConfigError):
        resolve_dataset(source)


def test_text_date_columns_not_range_filtered(nyc):
    """MM/DD/YYYY text columns would compare lexically, so the filter is dropped."""
    request = SearchRequest(submit_date_from="2024-01-01", approval_date_to="2024-06-30")
    query, adjustments = translate(request, nyc)
    assert query.where is None
    assert adjustments == [
        "NYC: Skipped submit_date_from filter - submit_date field 'filing_date' "
        "stores text dates in dataset 'dobPermitIssuance'",
        "NYC: Skipped approval_date_to filter - approval_date field 'issuance_date' "
        "stores text dates in dataset 'dobPermitIssuance'",
    ]


def test_timestamp_date_columns_filtered(nyc):
    query, adjustments = translate(
        SearchRequest(dataset_id="dobNowBuildApproved", submit_date_from="2024-01-01"), nyc
    )
    assert query.where == "issued_date >= '2024-01-01T00:00:00.000'"
    assert adjustments == []


def test_explicit_dataset(nyc):
    query, _ = translate(SearchRequest(dataset_id="dobNowBuildApproved", min_value=10), nyc)
    assert query.where == "estimated_job_costs::number >= 10"


# ---------------------------------------------------------------------------
# SoQLQuery
# ---------------------------------------------------------------------------


def test_to_params_uses_dollar_names():
    params = SoQLQuery(where="a = 1", limit=10, offset=20).to_params()
    assert params == {"$where": "a = 1", "$limit": "10", "$offset": "20"}


def test_as_count_keeps_filters_only():
    query = SoQLQuery(where="a = 1", order="b desc", limit=10, offset=20, q="deck")
    count = query.as_count()
    assert count.to_params() == {
        "$select": "count(*) as total",
        "$where": "a = 1",
        "$limit": "1",
        "$q": "deck",
    }


def test_id_query_strips_source_prefix(sf):
    dataset = sf.api.datasets["buildingPermits"]
    assert id_query(dataset, "sf", "sf-2024").where == "permit_number = '2024'"
    assert id_query(dataset, "sf", "2024").where == "permit_number = '2024'"


def test_quote_doubles_single_quotes():
    assert quote("O'Brien") == "'O''Brien'"

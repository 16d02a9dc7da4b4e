"""Unit tests for built-in dataset derivation functions."""
from __future__ import annotations

import pytest

from municipal_intel.sources.builtin import BUILTIN_REGISTRY

BUILTIN_DATASETS = [
    (source.id, dataset_id, dataset)
    for group in BUILTIN_REGISTRY.sources.values()
    for source in group.municipalities
    for dataset_id, dataset in source.api.datasets.items()
]


@pytest.mark.parametrize(
    "source_id, dataset_id, dataset",
    BUILTIN_DATASETS,
    ids=[f"{s}-{d}" for s, d, _ in BUILTIN_DATASETS],
)
def test_description_embeds_full_address(source_id, dataset_id, dataset):
    """Every built-in dataset exposes both derivations, and they agree on the address."""
    assert dataset.full_address is not None
    assert dataset.describe is not None
    address = dataset.full_address({})
    assert address
    assert address in dataset.describe({})


def test_full_address_from_row(sf, sf_permit_row):
    dataset = sf.api.datasets["buildingPermits"]
    assert dataset.full_address(sf_permit_row) == "100 Market St, San Francisco, CA, 94105"


def test_text_date_fields_are_known(registry):
    for source in registry.get_api_sources():
        for dataset in source.datasets.values():
            assert set(dataset.text_date_fields) <= set(dataset.known_fields)

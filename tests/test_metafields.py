"""Tests for metafield definition reconciliation against a fake target store."""

import logging

import pytest

from storemigrator.services.migration.columns import classify_headers
from storemigrator.services.migration.metafields import (
    OWNER_PRODUCT,
    OWNER_VARIANT,
    MetafieldSchemaReconciler,
    metafield_definitions,
)

HEADERS = [
    "Handle",
    "Metafield: custom.material [single_line_text_field]",
    "Metafield: custom.care [multi_line_text_field]",
    "Metafield: shopify.color-pattern [list.metaobject_reference]",
    "Metafield: shopify.fabric [single_line_text_field]",
    "Metafield: global.title_tag [string]",
    "Variant Metafield: custom.fit [single_line_text_field]",
]


def test_metafield_definitions_per_owner() -> None:
    definitions = metafield_definitions(classify_headers(HEADERS))
    assert [d.identifier for d in definitions[OWNER_PRODUCT]] == [
        "custom.material",
        "custom.care",
        "shopify.fabric",
    ]
    assert [d.identifier for d in definitions[OWNER_VARIANT]] == ["custom.fit"]


@pytest.mark.asyncio
async def test_creates_missing_definitions(fake_shop, target_client) -> None:
    fake_shop.definitions["PRODUCT"] = {"custom.material": "single_line_text_field"}
    reconciler = MetafieldSchemaReconciler(target_client, create_delay=0)

    summaries = await reconciler.reconcile(classify_headers(HEADERS))

    product, variant = summaries
    assert product.created == ["custom.care"]
    assert variant.created == ["custom.fit"]
    created = fake_shop.calls_for("metafieldDefinitionCreate")
    assert [c["definition"]["key"] for c in created] == ["care", "fit"]
    assert created[0]["definition"]["name"] == "care"
    assert created[0]["definition"]["pin"] is False
    # Reserved namespace is never created
    assert "shopify.fabric" not in fake_shop.definitions["PRODUCT"]


@pytest.mark.asyncio
async def test_type_mismatch_only_warns(fake_shop, target_client, caplog) -> None:
    fake_shop.definitions["PRODUCT"] = {
        "custom.material": "multi_line_text_field",
        "custom.care": "multi_line_text_field",
    }
    reconciler = MetafieldSchemaReconciler(target_client, create_delay=0)

    with caplog.at_level(logging.WARNING):
        product, _ = await reconciler.reconcile(classify_headers(HEADERS))

    assert product.mismatched == ["custom.material"]
    assert product.created == []
    assert fake_shop.definitions["PRODUCT"]["custom.material"] == "multi_line_text_field"
    assert any("type mismatch" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_definitions_paginated(fake_shop, target_client) -> None:
    fake_shop.page_size = 2
    fake_shop.definitions["PRODUCT"] = {f"custom.k{i}": "single_line_text_field" for i in range(5)}
    reconciler = MetafieldSchemaReconciler(target_client, create_delay=0)

    existing = await reconciler.load_existing("PRODUCT")

    assert len(existing) == 5
    assert len(fake_shop.calls_for("metafieldDefinitions")) == 3
    assert reconciler.cache["PRODUCT"] == existing


@pytest.mark.asyncio
async def test_failures_are_swallowed(fake_shop, target_client) -> None:
    fake_shop.definition_errors["custom.care"] = [{"code": "TAKEN", "field": ["definition"], "message": "taken"}]
    reconciler = MetafieldSchemaReconciler(target_client, create_delay=0)

    product, variant = await reconciler.reconcile(classify_headers(HEADERS))

    assert product.failed == ["custom.care"]
    assert product.created == ["custom.material"]
    assert variant.created == ["custom.fit"]


@pytest.mark.asyncio
async def test_listing_failure_skips_owner(fake_shop, target_client) -> None:
    fake_shop.fail_operations.add("metafieldDefinitions")
    reconciler = MetafieldSchemaReconciler(target_client, create_delay=0)

    product, variant = await reconciler.reconcile(classify_headers(HEADERS))

    assert product.failed == ["custom.material", "custom.care", "shopify.fabric"]
    assert variant.failed == ["custom.fit"]
    assert fake_shop.calls_for("metafieldDefinitionCreate") == []

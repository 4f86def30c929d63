"""Unit tests for header classification."""

from storemigrator.services.migration.columns import classify_headers


def test_fixed_columns_keep_priority_order() -> None:
    roles = classify_headers(["Product: Handle", "Handle", "Title"])
    assert roles.fixed["handle"] == ["Handle", "Product: Handle"]
    assert roles.value({"Handle": "", "Product: Handle": "shirt"}, "handle") == "shirt"
    assert roles.value({"Handle": "hat", "Product: Handle": "shirt"}, "handle") == "hat"


def test_fixed_columns_are_case_sensitive() -> None:
    roles = classify_headers(["handle", "TITLE"])
    assert "handle" not in roles.fixed
    assert "title" not in roles.fixed


def test_metafield_families() -> None:
    roles = classify_headers([
        "Handle",
        "Metafield: custom.material [single_line_text_field]",
        "Variant Metafield: custom.size_chart [url]",
    ])
    assert [c.identifier for c in roles.product_metafields] == ["custom.material"]
    assert roles.product_metafields[0].type == "single_line_text_field"
    assert [c.identifier for c in roles.variant_metafields] == ["custom.size_chart"]


def test_inventory_columns() -> None:
    roles = classify_headers([
        "Inventory Available: Main Warehouse",
        "Inventory On Hand: Main Warehouse",
        "Inventory: Outlet",
    ])
    main = roles.inventory["Main Warehouse"]
    assert main.available == "Inventory Available: Main Warehouse"
    assert main.on_hand == "Inventory On Hand: Main Warehouse"
    assert roles.inventory["Outlet"].available == "Inventory: Outlet"


def test_option_columns() -> None:
    roles = classify_headers(["Option1 Name", "Option1 Value", "Variant Option2 Name", "Variant Option2 Value"])
    assert roles.option_names[0] == ["Option1 Name"]
    assert roles.option_names[1] == ["Variant Option2 Name"]
    assert roles.option_values[2] == []


def test_publish_date_column_is_ignored() -> None:
    roles = classify_headers(["Handle", "Published", "Published At", "Published Scope"])
    assert roles.fixed["published"] == ["Published"]
    assert roles.fixed["published_scope"] == ["Published Scope"]
    assert not any("Published At" in headers for headers in roles.fixed.values())

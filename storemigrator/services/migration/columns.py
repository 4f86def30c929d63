"""Header classification for product sheets.

Headers are matched once per file against a declarative pattern table and
turned into a ``ColumnRoles`` map the assembler reads cell values through.
Fixed columns accept several spellings; the first present one wins.
"""

import re
from collections.abc import Iterable

from pydantic import BaseModel, Field

# Field name -> accepted header spellings, in priority order
FIXED_COLUMNS: dict[str, tuple[str, ...]] = {
    "handle": ("Handle", "Product: Handle"),
    "product_id": ("ID", "Product ID"),
    "title": ("Title", "Product: Title"),
    "description_html": ("Body HTML", "Product: Description HTML"),
    "product_type": ("Type", "Product Type", "Product: Type"),
    "vendor": ("Vendor", "Product: Vendor"),
    "tags": ("Tags", "Product: Tags"),
    "status": ("Status", "Product: Status"),
    "template_suffix": ("Template Suffix", "Product: Template Suffix"),
    "gift_card": ("Gift Card", "Product: Gift Card"),
    "published": ("Published",),
    "published_scope": ("Published Scope",),
    "collections": ("Custom Collections",),
    "category_id": ("Category: ID",),
    "seo_title": ("Metafield: title_tag [string]", "SEO: Title", "SEO Title"),
    "seo_description": (
        "Metafield: description_tag [string]",
        "SEO: Description",
        "SEO Description",
    ),
    "image_src": ("Image Src", "Image: Src", "Image URL", "Image"),
    "image_alt": ("Image Alt Text", "Image: Alt Text"),
    "image_position": ("Image Position", "Image: Position"),
    "variant_id": ("Variant ID", "Variant: ID"),
    "variant_sku": ("Variant SKU", "Variant: SKU", "SKU"),
    "variant_barcode": ("Variant Barcode", "Variant: Barcode"),
    "variant_price": ("Variant Price", "Variant: Price", "Price"),
    "variant_compare_at": ("Variant Compare At Price", "Variant: Compare At Price"),
    "variant_taxable": ("Variant Taxable", "Variant: Taxable"),
    "variant_requires_shipping": ("Variant Requires Shipping", "Variant: Requires Shipping"),
    "variant_inventory_policy": ("Variant Inventory Policy", "Variant: Inventory Policy"),
    "variant_inventory_tracker": ("Variant Inventory Tracker",),
    "variant_position": ("Variant Position", "Variant: Position", "Position"),
    "variant_weight": ("Variant Weight", "Weight Value"),
    "variant_weight_unit": ("Variant Weight Unit", "Variant: Weight Unit", "Weight Unit"),
    "variant_image": ("Variant Image",),
    "variant_cost": ("Variant Cost", "Cost per item"),
    "variant_hs_code": ("Variant HS Code",),
    "variant_country_of_origin": ("Variant Country of Origin",),
    "variant_province_of_origin": ("Variant Province of Origin",),
}

OPTION_NAME_HEADERS = tuple(
    (f"Option{i} Name", f"Variant Option{i} Name") for i in range(1, 4)
)
OPTION_VALUE_HEADERS = tuple(
    (f"Option{i} Value", f"Variant Option{i} Value") for i in range(1, 4)
)

METAFIELD_PATTERN = re.compile(r"^Metafield:\s*(.+?)\.(.+?)\s*\[(.+?)\]\s*$", re.IGNORECASE)
VARIANT_METAFIELD_PATTERN = re.compile(
    r"^Variant\s+Metafield:\s*(.+?)\.(.+?)\s*\[(.+?)\]\s*$", re.IGNORECASE
)
INVENTORY_LEVEL_PATTERN = re.compile(r"^Inventory\s+(Available|On Hand):\s*(.+?)\s*$", re.IGNORECASE)
INVENTORY_PATTERN = re.compile(r"^Inventory:\s*(.+?)\s*$", re.IGNORECASE)


class MetafieldColumn(BaseModel):
    """A ``Metafield: ns.key [type]`` column."""

    header: str
    namespace: str
    key: str
    type: str

    @property
    def identifier(self) -> str:
        return f"{self.namespace}.{self.key}"


class InventoryColumns(BaseModel):
    """Quantity columns for one location name."""

    location_name: str
    available: str | None = None
    on_hand: str | None = None


class ColumnRoles(BaseModel):
    """Typed role map for one sheet's headers."""

    fixed: dict[str, list[str]] = Field(default_factory=dict)
    option_names: list[list[str]] = Field(default_factory=list)
    option_values: list[list[str]] = Field(default_factory=list)
    product_metafields: list[MetafieldColumn] = Field(default_factory=list)
    variant_metafields: list[MetafieldColumn] = Field(default_factory=list)
    inventory: dict[str, InventoryColumns] = Field(default_factory=dict)

    def value(self, row: dict, field: str) -> str | None:
        """First non-empty cell among the headers mapped to ``field``."""
        return first_value(row, self.fixed.get(field, ()))


def first_value(row: dict, headers: Iterable[str]) -> str | None:
    for header in headers:
        value = row.get(header)
        if value is not None and str(value).strip() != "":
            return str(value).strip()
    return None


def _metafield_column(match: re.Match, header: str) -> MetafieldColumn:
    return MetafieldColumn(
        header=header,
        namespace=match.group(1).strip(),
        key=match.group(2).strip(),
        type=match.group(3).strip(),
    )


def classify_headers(headers: Iterable[str]) -> ColumnRoles:
    """Build the column role map for a sheet's header row."""
    headers = list(headers)
    present = set(headers)
    roles = ColumnRoles()

    for field, spellings in FIXED_COLUMNS.items():
        found = [h for h in spellings if h in present]
        if found:
            roles.fixed[field] = found

    roles.option_names = [[h for h in pair if h in present] for pair in OPTION_NAME_HEADERS]
    roles.option_values = [[h for h in pair if h in present] for pair in OPTION_VALUE_HEADERS]

    for header in headers:
        if m := VARIANT_METAFIELD_PATTERN.match(header):
            roles.variant_metafields.append(_metafield_column(m, header))
        elif m := METAFIELD_PATTERN.match(header):
            roles.product_metafields.append(_metafield_column(m, header))
        elif m := INVENTORY_LEVEL_PATTERN.match(header):
            location = m.group(2).strip()
            cols = roles.inventory.setdefault(location, InventoryColumns(location_name=location))
            if m.group(1).lower() == "available":
                cols.available = header
            else:
                cols.on_hand = header
        elif m := INVENTORY_PATTERN.match(header):
            location = m.group(1).strip()
            cols = roles.inventory.setdefault(location, InventoryColumns(location_name=location))
            if cols.available is None:
                cols.available = header

    return roles

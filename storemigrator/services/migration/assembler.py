"""Fold flat sheet rows into staging products.

Rows are visited in file order. The first row of a handle creates the
product; later rows fill scalar fields that are still empty and contribute
options, variants, media and metafields. Products come back in first-seen
handle order.
"""

import logging
from typing import Any

from .columns import ColumnRoles, MetafieldColumn, classify_headers, first_value
from .constants import (
    ALLOWED_METAFIELD_TYPES,
    DEFAULT_OPTION_NAME,
    DEFAULT_OPTION_VALUE,
    DENIED_METAFIELD_TYPES,
    SEO_DESCRIPTION_KEY,
    SEO_TITLE_KEY,
    SKIPPED_METAFIELD_KEYS,
)
from .normalizers import (
    clean,
    normalize_category_id,
    normalize_inventory_policy,
    normalize_status,
    normalize_weight_unit,
    split_list,
    to_bool,
    to_integer,
    to_number,
)
from .staging import (
    InventoryQuantity,
    SelectedOption,
    StagingInventoryItem,
    StagingMedia,
    StagingMetafield,
    StagingOption,
    StagingProduct,
    StagingVariant,
    WeightMeasurement,
)

logger = logging.getLogger(__name__)

# Product attribute -> column role, for first-non-empty-wins merging
_TEXT_FIELDS = {
    "product_id": "product_id",
    "title": "title",
    "description_html": "description_html",
    "product_type": "product_type",
    "vendor": "vendor",
    "template_suffix": "template_suffix",
    "seo_title": "seo_title",
    "seo_description": "seo_description",
}

# Fields that signal a row describes a sellable variant
_VARIANT_DATA_FIELDS = ("variant_sku", "variant_price", "variant_barcode", "variant_id")


def is_transferable_metafield(column: MetafieldColumn) -> bool:
    """Whether values of this metafield column can be sent to the target."""
    if column.key in SKIPPED_METAFIELD_KEYS:
        return False
    if column.key in (SEO_TITLE_KEY, SEO_DESCRIPTION_KEY):
        return False
    if column.type in DENIED_METAFIELD_TYPES:
        return False
    return column.type in ALLOWED_METAFIELD_TYPES


def is_default_title(selected: list[SelectedOption]) -> bool:
    return (
        len(selected) == 1
        and selected[0].name == DEFAULT_OPTION_NAME
        and selected[0].value == DEFAULT_OPTION_VALUE
    )


class RowAssembler:
    """Builds StagingProducts from one sheet.

    Args:
        headers: The sheet's header row.
        location_ids: Target location name -> location id, used to resolve
            inventory columns.
    """

    def __init__(self, headers: list[str], location_ids: dict[str, str] | None = None) -> None:
        self.roles: ColumnRoles = classify_headers(headers)
        self.location_ids = location_ids or {}
        self._products: dict[str, StagingProduct] = {}
        self._variant_ids: dict[str, set[str]] = {}
        self._media_keys: dict[str, set[tuple[str, str, str]]] = {}
        self._unknown_locations: set[str] = set()

    def assemble(self, rows: list[dict[str, Any]]) -> list[StagingProduct]:
        """Fold ``rows`` into products. Rows without a handle are skipped."""
        for row in rows:
            handle = self.roles.value(row, "handle")
            if handle is None:
                continue

            product = self._products.get(handle)
            if product is None:
                product = StagingProduct(handle=handle)
                self._products[handle] = product
                self._variant_ids[handle] = set()
                self._media_keys[handle] = set()

            self._merge_product_fields(product, row)
            self._add_product_metafields(product, row)
            self._add_media(product, row)
            selected = self._selected_options(product, row)
            variant = self._build_variant(product, row, selected)
            if variant is not None:
                product.variants.append(variant)

        return list(self._products.values())

    # ------------------------------------------------------------------
    # Product level
    # ------------------------------------------------------------------

    def _merge_product_fields(self, product: StagingProduct, row: dict[str, Any]) -> None:
        roles = self.roles
        for attr, field in _TEXT_FIELDS.items():
            if getattr(product, attr) is None:
                setattr(product, attr, roles.value(row, field))

        if product.status is None:
            product.status = normalize_status(roles.value(row, "status"))
        if product.gift_card is None:
            product.gift_card = to_bool(roles.value(row, "gift_card"))
        if product.published is None:
            product.published = to_bool(roles.value(row, "published"))
        if product.published_scope is None:
            scope = roles.value(row, "published_scope")
            product.published_scope = scope.lower() if scope else None
        if product.category_id is None:
            product.category_id = normalize_category_id(roles.value(row, "category_id"))
        if not product.collection_handles:
            product.collection_handles = split_list(roles.value(row, "collections"))

        for tag in split_list(roles.value(row, "tags")):
            if tag not in product.tags:
                product.tags.append(tag)

    def _add_product_metafields(self, product: StagingProduct, row: dict[str, Any]) -> None:
        seen = {mf.identifier for mf in product.metafields}
        for column in self.roles.product_metafields:
            value = clean(row.get(column.header))
            if value is None:
                continue
            if column.key == SEO_TITLE_KEY:
                product.seo_title = product.seo_title or value
                continue
            if column.key == SEO_DESCRIPTION_KEY:
                product.seo_description = product.seo_description or value
                continue
            if not is_transferable_metafield(column) or column.identifier in seen:
                continue
            seen.add(column.identifier)
            product.metafields.append(
                StagingMetafield(
                    namespace=column.namespace,
                    key=column.key,
                    type=column.type,
                    value=value,
                )
            )

    def _add_media(self, product: StagingProduct, row: dict[str, Any]) -> None:
        src = self.roles.value(row, "image_src")
        if src is None:
            return
        media = StagingMedia(
            source_url=src,
            alt=self.roles.value(row, "image_alt") or product.title,
            position=to_integer(self.roles.value(row, "image_position")),
        )
        keys = self._media_keys[product.handle]
        if media.dedup_key in keys:
            return
        keys.add(media.dedup_key)
        product.media.append(media)

    def _selected_options(self, product: StagingProduct, row: dict[str, Any]) -> list[SelectedOption]:
        selected: list[SelectedOption] = []
        for name_headers, value_headers in zip(self.roles.option_names, self.roles.option_values):
            name = first_value(row, name_headers)
            value = first_value(row, value_headers)
            if name is None or value is None:
                continue
            selected.append(SelectedOption(name=name, value=value))
            self._register_option(product, name, value)
        return selected

    @staticmethod
    def _register_option(product: StagingProduct, name: str, value: str) -> None:
        option = product.option(name)
        if option is None:
            option = StagingOption(name=name, position=len(product.options) + 1)
            product.options.append(option)
        if value not in option.values:
            option.values.append(value)

    # ------------------------------------------------------------------
    # Variant level
    # ------------------------------------------------------------------

    def _build_variant(
        self,
        product: StagingProduct,
        row: dict[str, Any],
        selected: list[SelectedOption],
    ) -> StagingVariant | None:
        roles = self.roles

        if not selected:
            # Sheets without option columns: a variant row becomes the
            # product's single default variant
            has_variant_data = any(roles.value(row, f) for f in _VARIANT_DATA_FIELDS)
            if product.variants or not has_variant_data:
                return None
            selected = [SelectedOption(name=DEFAULT_OPTION_NAME, value=DEFAULT_OPTION_VALUE)]
            self._register_option(product, DEFAULT_OPTION_NAME, DEFAULT_OPTION_VALUE)

        # Default Title is only valid as the sole variant; this drops
        # image-only rows that repeat it
        if is_default_title(selected) and product.variants:
            return None

        variant_id = roles.value(row, "variant_id")
        if variant_id is not None:
            seen_ids = self._variant_ids[product.handle]
            if variant_id in seen_ids:
                return None
            seen_ids.add(variant_id)

        sku = roles.value(row, "variant_sku")
        return StagingVariant(
            variant_id=variant_id,
            sku=sku,
            barcode=roles.value(row, "variant_barcode"),
            price=roles.value(row, "variant_price"),
            compare_at_price=roles.value(row, "variant_compare_at"),
            taxable=to_bool(roles.value(row, "variant_taxable")),
            inventory_policy=normalize_inventory_policy(roles.value(row, "variant_inventory_policy")),
            position=to_integer(roles.value(row, "variant_position")),
            image_url=roles.value(row, "variant_image"),
            selected_options=selected,
            inventory_item=self._inventory_item(row, sku),
            inventory_quantities=self._inventory_quantities(row),
            metafields=self._variant_metafields(row),
        )

    def _inventory_item(self, row: dict[str, Any], sku: str | None) -> StagingInventoryItem:
        roles = self.roles
        weight = None
        weight_value = to_number(roles.value(row, "variant_weight"))
        weight_unit = normalize_weight_unit(roles.value(row, "variant_weight_unit"))
        if weight_value is not None and weight_unit is not None:
            weight = WeightMeasurement(value=weight_value, unit=weight_unit)

        return StagingInventoryItem(
            sku=sku,
            tracked=roles.value(row, "variant_inventory_tracker") is not None,
            cost=roles.value(row, "variant_cost"),
            country_code_of_origin=roles.value(row, "variant_country_of_origin"),
            province_code_of_origin=roles.value(row, "variant_province_of_origin"),
            harmonized_system_code=roles.value(row, "variant_hs_code"),
            requires_shipping=to_bool(roles.value(row, "variant_requires_shipping")),
            weight=weight,
        )

    def _inventory_quantities(self, row: dict[str, Any]) -> list[InventoryQuantity]:
        quantities: list[InventoryQuantity] = []
        for location_name, cols in self.roles.inventory.items():
            location_id = self.location_ids.get(location_name)
            if location_id is None:
                if location_name not in self._unknown_locations:
                    self._unknown_locations.add(location_name)
                    logger.warning("Unknown target location: %s", location_name)
                continue

            quantity, name = None, None
            if cols.on_hand and clean(row.get(cols.on_hand)) is not None:
                quantity, name = to_integer(row.get(cols.on_hand)), "on_hand"
            elif cols.available and clean(row.get(cols.available)) is not None:
                quantity, name = to_integer(row.get(cols.available)), "available"
            if quantity is None:
                continue

            quantities.append(InventoryQuantity(location_id=location_id, name=name, quantity=quantity))
        return quantities

    def _variant_metafields(self, row: dict[str, Any]) -> list[StagingMetafield]:
        metafields: list[StagingMetafield] = []
        seen: set[str] = set()
        for column in self.roles.variant_metafields:
            value = clean(row.get(column.header))
            if value is None or column.identifier in seen:
                continue
            if not is_transferable_metafield(column):
                continue
            seen.add(column.identifier)
            metafields.append(
                StagingMetafield(
                    namespace=column.namespace,
                    key=column.key,
                    type=column.type,
                    value=value,
                )
            )
        return metafields


def assemble_products(
    headers: list[str],
    rows: list[dict[str, Any]],
    location_ids: dict[str, str] | None = None,
) -> list[StagingProduct]:
    """Convenience wrapper: one RowAssembler pass over ``rows``."""
    return RowAssembler(headers, location_ids).assemble(rows)

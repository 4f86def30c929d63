"""Create staging products on the target store.

Products are looked up by handle first; a product that already exists is
reported and left untouched. New products go through one ``productSet``
call and, when the sheet asks for it, one ``publishablePublish`` call.
All remote calls for a run are made one at a time.
"""

import logging
from typing import Any

from pydantic import BaseModel, Field

from storemigrator.services.target_client import TargetAPIError, TargetClient, format_user_errors

from .constants import ONLINE_STORE_PUBLICATION_NAMES, PUBLISH_SCOPE_GLOBAL, PUBLISH_SCOPE_WEB
from .queries import (
    COLLECTIONS_QUERY,
    LOCATIONS_QUERY,
    PRODUCT_BY_HANDLE_QUERY,
    PRODUCT_SET_MUTATION,
    PUBLICATIONS_QUERY,
    PUBLISHABLE_PUBLISH_MUTATION,
)
from .report import ReportRow
from .staging import StagingProduct, StagingVariant

logger = logging.getLogger(__name__)

ALREADY_EXISTS_REASON = "Product already exists on target store"


class TargetMaps(BaseModel):
    """Lookup tables fetched from the target store once per run."""

    collections: dict[str, str] = Field(default_factory=dict)
    publications: dict[str, str] = Field(default_factory=dict)
    locations: dict[str, str] = Field(default_factory=dict)


def format_failure_reason(err: BaseException) -> str:
    message = str(err)
    return message or err.__class__.__name__


def _compact(data: dict[str, Any]) -> dict[str, Any]:
    """Drop keys whose value is None."""
    return {k: v for k, v in data.items() if v is not None}


class ProductSyncEngine:
    """Sends staging products to one target store.

    Args:
        client: Shared target API client.
        page_size: Page size for setup queries.
        synchronous: Whether ``productSet`` runs synchronously.
    """

    def __init__(self, client: TargetClient, page_size: int = 250, synchronous: bool = True) -> None:
        self.client = client
        self.page_size = page_size
        self.synchronous = synchronous
        self.maps = TargetMaps()

    # ------------------------------------------------------------------
    # Per-run setup
    # ------------------------------------------------------------------

    async def fetch_collections(self) -> dict[str, str]:
        collections: dict[str, str] = {}
        async for node in self.client.paginate(
            COLLECTIONS_QUERY, "collections", {"first": self.page_size}, label="fetch target collections"
        ):
            collections[node["handle"]] = node["id"]
        return collections

    async def fetch_publications(self) -> dict[str, str]:
        """Publication handle/app title/catalog title -> publication id."""
        publications: dict[str, str] = {}
        async for node in self.client.paginate(
            PUBLICATIONS_QUERY, "publications", {"first": self.page_size}, label="fetch target publications"
        ):
            app = node.get("app") or {}
            catalog = node.get("catalog") or {}
            if app.get("handle"):
                publications[app["handle"]] = node["id"]
            for name in (app.get("title"), catalog.get("title")):
                if name and name not in publications:
                    publications[name] = node["id"]
        return publications

    async def fetch_locations(self) -> dict[str, str]:
        """Location name -> location id."""
        locations: dict[str, str] = {}
        async for node in self.client.paginate(
            LOCATIONS_QUERY, "locations", {"first": self.page_size}, label="fetch target locations"
        ):
            locations[node["name"]] = node["id"]
        return locations

    async def prepare(self) -> TargetMaps:
        """Fetch the collection, publication and location maps.

        A map that cannot be fetched is left empty; references into it are
        then skipped with a warning instead of failing the run.
        """
        maps = TargetMaps()
        for attr, fetch in (
            ("collections", self.fetch_collections),
            ("publications", self.fetch_publications),
            ("locations", self.fetch_locations),
        ):
            try:
                setattr(maps, attr, await fetch())
            except TargetAPIError as e:
                logger.warning("Could not fetch target %s: %s", attr, e)

        if not maps.locations:
            logger.warning("No locations found on target store. Inventory will not be assigned.")
        self.maps = maps
        return maps

    # ------------------------------------------------------------------
    # Transformation
    # ------------------------------------------------------------------

    def resolve_collections(self, product: StagingProduct) -> list[str]:
        ids = []
        for handle in product.collection_handles:
            collection_id = self.maps.collections.get(handle)
            if collection_id:
                ids.append(collection_id)
            else:
                logger.warning('Collection handle "%s" not found on target store', handle)
        return ids

    @staticmethod
    def transform_variant(variant: StagingVariant, index: int) -> dict[str, Any]:
        variant_input = _compact({
            "position": variant.position or index + 1,
            "sku": variant.sku,
            "barcode": variant.barcode,
            "taxable": variant.taxable,
            "price": variant.price,
            "compareAtPrice": variant.compare_at_price,
            "inventoryPolicy": variant.inventory_policy,
            "optionValues": [
                {"optionName": opt.name, "name": opt.value} for opt in variant.selected_options
            ],
        })
        if variant.image_url:
            variant_input["file"] = {"contentType": "IMAGE", "originalSource": variant.image_url}

        item = variant.inventory_item
        item_input = _compact({
            "sku": item.sku or variant.sku,
            "tracked": item.tracked,
            "cost": item.cost,
            "countryCodeOfOrigin": item.country_code_of_origin,
            "provinceCodeOfOrigin": item.province_code_of_origin,
            "harmonizedSystemCode": item.harmonized_system_code,
            "requiresShipping": item.requires_shipping,
        })
        if item.weight is not None:
            item_input["measurement"] = {
                "weight": {"value": item.weight.value, "unit": item.weight.unit}
            }
        if item_input:
            variant_input["inventoryItem"] = item_input

        if variant.inventory_quantities:
            variant_input["inventoryQuantities"] = [
                {"locationId": q.location_id, "name": q.name, "quantity": q.quantity}
                for q in variant.inventory_quantities
            ]
        if variant.metafields:
            variant_input["metafields"] = [mf.model_dump() for mf in variant.metafields]
        return variant_input

    def transform_product(self, product: StagingProduct, existing_id: str | None = None) -> dict[str, Any]:
        """Build the ``ProductSetInput`` for a staging product."""
        product_input = _compact({
            "id": existing_id,
            "handle": product.handle,
            "title": product.title,
            "descriptionHtml": product.description_html,
            "productType": product.product_type,
            "vendor": product.vendor,
            "tags": product.tags,
            "status": product.status,
            "templateSuffix": product.template_suffix,
            "giftCard": product.gift_card,
            "category": product.category_id,
        })

        product_input["files"] = [
            {"contentType": "IMAGE", "originalSource": media.source_url, "alt": media.alt or product.title}
            for media in product.media
        ]
        product_input["metafields"] = [mf.model_dump() for mf in product.metafields]
        product_input["variants"] = [
            self.transform_variant(variant, idx)
            for idx, variant in enumerate(product.variants)
            if variant.selected_options
        ]

        if product.options:
            product_input["productOptions"] = [
                {
                    "name": opt.name,
                    "position": opt.position or idx + 1,
                    "values": [{"name": value} for value in opt.values],
                }
                for idx, opt in enumerate(product.options)
            ]

        collections = self.resolve_collections(product)
        if collections:
            product_input["collections"] = collections

        if product.seo_title or product.seo_description:
            product_input["seo"] = _compact({
                "title": product.seo_title,
                "description": product.seo_description,
            })

        return product_input

    def publication_inputs(self, product: StagingProduct) -> list[dict[str, str]]:
        """Publications the product should be published to.

        ``web`` targets the Online Store only, ``global`` every known
        publication. Other scopes, and products whose Published cell is not
        true (blank included), get none.
        """
        if product.published is not True:
            return []

        scope = product.published_scope
        if scope == PUBLISH_SCOPE_WEB:
            for name in ONLINE_STORE_PUBLICATION_NAMES:
                publication_id = self.maps.publications.get(name)
                if publication_id:
                    return [{"publicationId": publication_id}]
            logger.warning("Online Store publication not found on target")
            return []

        if scope == PUBLISH_SCOPE_GLOBAL:
            unique_ids = dict.fromkeys(pid for pid in self.maps.publications.values() if pid)
            return [{"publicationId": pid} for pid in unique_ids]

        return []

    # ------------------------------------------------------------------
    # Remote calls
    # ------------------------------------------------------------------

    async def find_product_id(self, handle: str) -> str | None:
        data = await self.client.execute(
            PRODUCT_BY_HANDLE_QUERY, {"handle": handle}, label=f"findProductByHandle {handle}"
        )
        return (data.get("productByIdentifier") or {}).get("id")

    async def sync_product(self, product: StagingProduct) -> ReportRow:
        """Create one product on the target and return its report row.

        Never raises: every failure becomes a FAILED row.
        """
        handle, title, sheet_id = product.handle, product.title or "", product.product_id
        try:
            existing_id = await self.find_product_id(handle)
            if existing_id:
                logger.info("Existing product on target for %s: %s", handle, existing_id)
                return ReportRow.success(sheet_id, handle, title, existing_id, ALREADY_EXISTS_REASON)

            product_input = self.transform_product(product)
            data = await self.client.execute(
                PRODUCT_SET_MUTATION,
                {"productSet": product_input, "synchronous": self.synchronous},
                label=f"productSet {handle}",
            )
            result = data.get("productSet") or {}

            user_errors = result.get("userErrors")
            if user_errors:
                logger.warning("productSet userErrors for %s: %s", handle, user_errors)
                return ReportRow.failed(sheet_id, handle, title, format_user_errors(user_errors))

            operation_errors = (result.get("productSetOperation") or {}).get("userErrors")
            if operation_errors:
                logger.warning("productSetOperation userErrors for %s: %s", handle, operation_errors)
                return ReportRow.failed(sheet_id, handle, title, format_user_errors(operation_errors))

            product_id = (result.get("product") or {}).get("id")
            logger.info("Created %s -> %s", handle, product_id or "(no id returned)")

            if product_id:
                publications = self.publication_inputs(product)
                if publications:
                    data = await self.client.execute(
                        PUBLISHABLE_PUBLISH_MUTATION,
                        {"id": product_id, "input": publications},
                        label=f"publish {handle}",
                    )
                    publish_errors = (data.get("publishablePublish") or {}).get("userErrors")
                    if publish_errors:
                        logger.warning("publishablePublish userErrors for %s: %s", handle, publish_errors)
                        return ReportRow.failed(
                            sheet_id, handle, title, format_user_errors(publish_errors), created_id=product_id
                        )
                    logger.info("Published %s to %d publication(s)", handle, len(publications))

            return ReportRow.success(sheet_id, handle, title, product_id)
        except Exception as e:
            logger.exception("Failed to migrate %s", handle)
            return ReportRow.failed(sheet_id, handle, title, format_failure_reason(e))

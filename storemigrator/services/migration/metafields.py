"""Metafield definition reconciliation against the target store.

Before any product is sent, every distinct ``namespace.key [type]`` found in
the sheet headers must have a definition on the target. Missing definitions
are created; type mismatches are only logged. Failures here never abort the
migration.
"""

import asyncio
import logging

from pydantic import BaseModel, Field

from storemigrator.services.target_client import TargetAPIError, TargetClient, format_user_errors

from .assembler import is_transferable_metafield
from .columns import ColumnRoles
from .constants import RESERVED_NAMESPACE
from .queries import METAFIELD_DEFINITION_CREATE, METAFIELD_DEFINITIONS_QUERY

logger = logging.getLogger(__name__)

OWNER_PRODUCT = "PRODUCT"
OWNER_VARIANT = "PRODUCTVARIANT"


class MetafieldDefinition(BaseModel):
    namespace: str
    key: str
    type: str

    @property
    def identifier(self) -> str:
        return f"{self.namespace}.{self.key}"


class ReconcileSummary(BaseModel):
    """Outcome counts for one owner type."""

    owner_type: str
    existing: int = 0
    created: list[str] = Field(default_factory=list)
    mismatched: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)


def metafield_definitions(roles: ColumnRoles) -> dict[str, list[MetafieldDefinition]]:
    """Distinct transferable definitions per owner type, in header order."""
    result: dict[str, list[MetafieldDefinition]] = {}
    for owner_type, columns in (
        (OWNER_PRODUCT, roles.product_metafields),
        (OWNER_VARIANT, roles.variant_metafields),
    ):
        seen: dict[str, MetafieldDefinition] = {}
        for column in columns:
            if not is_transferable_metafield(column):
                continue
            if column.identifier not in seen:
                seen[column.identifier] = MetafieldDefinition(
                    namespace=column.namespace, key=column.key, type=column.type
                )
        result[owner_type] = list(seen.values())
    return result


class MetafieldSchemaReconciler:
    """Creates missing metafield definitions on the target store.

    The definition cache is per instance; build one reconciler per job run.
    """

    def __init__(self, client: TargetClient, page_size: int = 250, create_delay: float = 0.25) -> None:
        self.client = client
        self.page_size = page_size
        self.create_delay = create_delay
        self.cache: dict[str, dict[str, str]] = {}

    async def load_existing(self, owner_type: str) -> dict[str, str]:
        """Fetch ``namespace.key -> type`` for every definition of ``owner_type``."""
        existing: dict[str, str] = {}
        async for node in self.client.paginate(
            METAFIELD_DEFINITIONS_QUERY,
            "metafieldDefinitions",
            {"ownerType": owner_type, "first": self.page_size},
            label=f"{owner_type} metafieldDefinitions",
        ):
            existing[f"{node['namespace']}.{node['key']}"] = (node.get("type") or {}).get("name")
        self.cache[owner_type] = existing
        return existing

    async def create_definition(self, owner_type: str, definition: MetafieldDefinition) -> None:
        data = await self.client.execute(
            METAFIELD_DEFINITION_CREATE,
            {
                "definition": {
                    "ownerType": owner_type,
                    "namespace": definition.namespace,
                    "key": definition.key,
                    "type": definition.type,
                    "name": definition.key,
                    "pin": False,
                }
            },
            label="metafieldDefinitionCreate",
        )
        user_errors = (data.get("metafieldDefinitionCreate") or {}).get("userErrors")
        if user_errors:
            raise TargetAPIError(format_user_errors(user_errors))

    async def reconcile_owner(
        self, owner_type: str, definitions: list[MetafieldDefinition]
    ) -> ReconcileSummary:
        summary = ReconcileSummary(owner_type=owner_type)
        if not definitions:
            return summary

        try:
            existing = await self.load_existing(owner_type)
        except TargetAPIError as e:
            logger.warning("Could not list %s metafield definitions: %s", owner_type, e)
            summary.failed = [d.identifier for d in definitions]
            return summary
        summary.existing = len(existing)

        for definition in definitions:
            if definition.namespace == RESERVED_NAMESPACE:
                continue
            current_type = existing.get(definition.identifier)
            if current_type is not None:
                if current_type != definition.type:
                    logger.warning(
                        "Metafield type mismatch for %s: existing=%s, sheet=%s",
                        definition.identifier,
                        current_type,
                        definition.type,
                    )
                    summary.mismatched.append(definition.identifier)
                continue

            logger.info("Creating %s metafield definition %s [%s]", owner_type, definition.identifier, definition.type)
            try:
                await self.create_definition(owner_type, definition)
            except TargetAPIError as e:
                logger.warning("Failed to create metafield definition %s: %s", definition.identifier, e)
                summary.failed.append(definition.identifier)
            else:
                existing[definition.identifier] = definition.type
                summary.created.append(definition.identifier)

            if self.create_delay:
                await asyncio.sleep(self.create_delay)

        return summary

    async def reconcile(self, roles: ColumnRoles) -> list[ReconcileSummary]:
        """Reconcile product then variant definitions found in ``roles``."""
        definitions = metafield_definitions(roles)
        return [
            await self.reconcile_owner(owner_type, definitions[owner_type])
            for owner_type in (OWNER_PRODUCT, OWNER_VARIANT)
        ]

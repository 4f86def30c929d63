"""Product migration pipeline: sheet bytes in, report and counters out."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path

from storemigrator.services.target_client import TargetClient

from .assembler import RowAssembler
from .metafields import MetafieldSchemaReconciler
from .parsers import SpreadsheetError, load_sheet_rows
from .report import MigrationResult, ReportBuilder, RowStatus
from .sync import ProductSyncEngine

logger = logging.getLogger(__name__)

# (processed, success, failed, total)
ProgressCallback = Callable[[int, int, int, int], Awaitable[None]]


async def migrate_products(
    content: bytes,
    filename: str,
    client: TargetClient,
    reports_dir: Path,
    *,
    job_id: str | None = None,
    on_progress: ProgressCallback | None = None,
    product_delay: float = 1.0,
    definition_delay: float = 0.25,
    page_size: int = 250,
) -> MigrationResult:
    """Migrate every product in an uploaded sheet to the target store.

    Args:
        content: Raw upload bytes.
        filename: Original file name; its extension selects the parser.
        client: Shared target API client.
        reports_dir: Directory the outcome report is written to.
        job_id: Included in the report file name when given.
        on_progress: Awaited after each product with the running counters.
        product_delay: Seconds to wait after each product.
        definition_delay: Seconds to wait after each definition create.
        page_size: Page size for setup queries.

    Returns:
        Aggregate counters and the report path.

    Raises:
        SpreadsheetError: If the file cannot be parsed or has no header row.
        Exception: Whatever ``on_progress`` raises stops the run before the
            next product is sent.
    """
    headers, rows = load_sheet_rows(content, filename)
    if not headers:
        raise SpreadsheetError("Sheet has no header row")
    logger.info("Starting product migration: %d rows from %s", len(rows), filename)

    engine = ProductSyncEngine(client, page_size=page_size)
    maps = await engine.prepare()

    assembler = RowAssembler(headers, maps.locations)

    reconciler = MetafieldSchemaReconciler(client, page_size=page_size, create_delay=definition_delay)
    try:
        await reconciler.reconcile(assembler.roles)
    except Exception:
        logger.exception("Metafield definition reconciliation failed; continuing without it")

    products = assembler.assemble(rows)
    total = len(products)
    logger.info("Assembled %d products", total)

    report = ReportBuilder(reports_dir, job_id=job_id)
    if on_progress is not None:
        await on_progress(0, 0, 0, total)

    for index, product in enumerate(products, 1):
        logger.info("Migrating product %d/%d: %s (%s)", index, total, product.title, product.handle)
        row = report.add(await engine.sync_product(product))
        if row.status == RowStatus.FAILED:
            logger.warning("Product %s failed: %s", product.handle, row.reason)

        if on_progress is not None:
            await on_progress(index, report.success_count, report.failed_count, total)
        if product_delay:
            await asyncio.sleep(product_delay)

    result = await report.finish(total_processed=total)
    logger.info(
        "Product migration complete: %d ok, %d failed", result.success_count, result.failed_count
    )
    return result

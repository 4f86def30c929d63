"""Pytest configuration and fixtures for StoreMigrator tests with real MongoDB."""

import asyncio
import csv
import io
import json
import os
import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import httpx
import pytest
import pytest_asyncio
from beanie import init_beanie
from httpx import ASGITransport, AsyncClient
from motor.motor_asyncio import AsyncIOMotorClient
from openpyxl import Workbook

from storemigrator.database import get_document_models
from storemigrator.services.job_queue import JobQueue
from storemigrator.services.target_client import TargetClient

# MongoDB connection URL for tests (can be overridden with env var)
TEST_MONGODB_URL = os.environ.get("TEST_MONGODB_URL", "mongodb://localhost:27017")

TEST_ENDPOINT = "https://test-shop.myshopify.com/admin/api/2025-10/graphql.json"


# =============================================================================
# Sheet builders
# =============================================================================


def make_csv(headers: list[str], rows: list[list[Any]]) -> bytes:
    """Build CSV bytes from a header row and data rows."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(headers)
    writer.writerows(rows)
    return output.getvalue().encode("utf-8")


def make_xlsx(headers: list[str], rows: list[list[Any]]) -> bytes:
    """Build XLSX bytes from a header row and data rows."""
    wb = Workbook()
    ws = wb.active
    ws.append(headers)
    for row in rows:
        ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


PRODUCT_HEADERS = [
    "Handle",
    "Title",
    "Body HTML",
    "Vendor",
    "Tags",
    "Status",
    "Published",
    "Published Scope",
    "Option1 Name",
    "Option1 Value",
    "Variant SKU",
    "Variant Price",
    "Image Src",
]


def product_rows(count: int = 3) -> list[list[Any]]:
    """``count`` single-variant products named product-1..product-N."""
    return [
        [
            f"product-{i}",
            f"Product {i}",
            f"<p>Product {i}</p>",
            "Acme",
            "sale, new",
            "active",
            "TRUE",
            "web",
            "Title",
            "Default Title",
            f"SKU-{i}",
            f"{i}0.00",
            f"https://cdn.example.com/product-{i}.jpg",
        ]
        for i in range(1, count + 1)
    ]


# =============================================================================
# Fake target store
# =============================================================================


class FakeShop:
    """In-memory stand-in for the target store's GraphQL endpoint.

    Requests are dispatched on the root field named in the query text.
    Every request is recorded in ``calls`` as ``(operation, variables)``.
    """

    def __init__(self) -> None:
        self.products: dict[str, str] = {}
        self.collections: dict[str, str] = {"summer": "gid://shopify/Collection/1"}
        self.publications: list[dict[str, Any]] = [
            {
                "id": "gid://shopify/Publication/1",
                "catalog": {"id": "gid://shopify/AppCatalog/1", "title": "Online Store"},
                "app": {"id": "gid://shopify/App/1", "title": "Online Store", "handle": "online_store"},
            },
            {
                "id": "gid://shopify/Publication/2",
                "catalog": {"id": "gid://shopify/AppCatalog/2", "title": "Point of Sale"},
                "app": {"id": "gid://shopify/App/2", "title": "Point of Sale", "handle": "pos"},
            },
        ]
        self.locations: list[dict[str, str]] = [
            {"id": "gid://shopify/Location/1", "name": "Main Warehouse"},
        ]
        self.definitions: dict[str, dict[str, str]] = {"PRODUCT": {}, "PRODUCTVARIANT": {}}
        self.product_errors: dict[str, list[dict[str, Any]]] = {}
        self.publish_errors: dict[str, list[dict[str, Any]]] = {}
        self.definition_errors: dict[str, list[dict[str, Any]]] = {}
        self.fail_operations: set[str] = set()
        self.page_size: int | None = None
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self._next_id = 1000

    def calls_for(self, operation: str) -> list[dict[str, Any]]:
        return [variables for op, variables in self.calls if op == operation]

    def _page(self, nodes: list[dict[str, Any]], variables: dict[str, Any]) -> dict[str, Any]:
        start = int(variables.get("cursor") or 0)
        size = self.page_size or variables.get("first") or 250
        chunk = nodes[start:start + size]
        end = start + len(chunk)
        return {
            "nodes": chunk,
            "pageInfo": {"hasNextPage": end < len(nodes), "endCursor": str(end)},
        }

    @staticmethod
    def _operation(query: str) -> str:
        for name in (
            "metafieldDefinitionCreate",
            "metafieldDefinitions",
            "productByIdentifier",
            "productSet",
            "publishablePublish",
            "collections",
            "publications",
            "locations",
        ):
            if f"{name}(" in query:
                return name
        raise AssertionError(f"Unexpected query: {query}")

    def _resolve(self, operation: str, variables: dict[str, Any]) -> dict[str, Any]:
        if operation == "metafieldDefinitions":
            owner = variables["ownerType"]
            nodes = [
                {"namespace": ident.split(".", 1)[0], "key": ident.split(".", 1)[1], "type": {"name": t}}
                for ident, t in self.definitions.get(owner, {}).items()
            ]
            return {"metafieldDefinitions": self._page(nodes, variables)}

        if operation == "metafieldDefinitionCreate":
            definition = variables["definition"]
            ident = f"{definition['namespace']}.{definition['key']}"
            errors = self.definition_errors.get(ident, [])
            if not errors:
                self.definitions.setdefault(definition["ownerType"], {})[ident] = definition["type"]
            return {"metafieldDefinitionCreate": {"createdDefinition": None, "userErrors": errors}}

        if operation == "productByIdentifier":
            product_id = self.products.get(variables["handle"])
            return {"productByIdentifier": {"id": product_id, "handle": variables["handle"]} if product_id else None}

        if operation == "productSet":
            product_input = variables["productSet"]
            handle = product_input["handle"]
            errors = self.product_errors.get(handle, [])
            if errors:
                return {"productSet": {"product": None, "productSetOperation": None, "userErrors": errors}}
            self._next_id += 1
            product_id = f"gid://shopify/Product/{self._next_id}"
            self.products[handle] = product_id
            return {
                "productSet": {
                    "product": {"id": product_id},
                    "productSetOperation": None,
                    "userErrors": [],
                }
            }

        if operation == "publishablePublish":
            handle = next((h for h, pid in self.products.items() if pid == variables["id"]), None)
            errors = self.publish_errors.get(handle, [])
            return {"publishablePublish": {"publishable": {"id": variables["id"]}, "userErrors": errors}}

        if operation == "collections":
            nodes = [{"id": cid, "handle": h} for h, cid in self.collections.items()]
            return {"collections": self._page(nodes, variables)}

        if operation == "publications":
            return {"publications": self._page(self.publications, variables)}

        if operation == "locations":
            return {"locations": self._page(self.locations, variables)}

        raise AssertionError(operation)

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        operation = self._operation(body["query"])
        variables = body.get("variables") or {}
        self.calls.append((operation, variables))

        if operation in self.fail_operations:
            return httpx.Response(500, text="Internal Server Error")
        return httpx.Response(200, json={"data": self._resolve(operation, variables)})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_shop() -> FakeShop:
    return FakeShop()


@pytest_asyncio.fixture
async def target_client(fake_shop) -> AsyncGenerator[TargetClient, None]:
    """A TargetClient wired to the fake shop."""
    async with TargetClient(TEST_ENDPOINT, "test-token", transport=fake_shop.transport()) as client:
        yield client


@pytest.fixture
def reports_dir(tmp_path) -> Path:
    path = tmp_path / "reports"
    path.mkdir()
    return path


@pytest.fixture
def uploads_dir(tmp_path) -> Path:
    path = tmp_path / "uploads"
    path.mkdir()
    return path


# =============================================================================
# Database
# =============================================================================


@pytest.fixture(scope="session")
def event_loop_policy():
    """Use the default event loop policy."""
    return asyncio.DefaultEventLoopPolicy()


@pytest_asyncio.fixture(scope="function")
async def mongo_client():
    """Create a MongoDB client for testing.

    Function-scoped to avoid event loop issues with pytest-xdist.
    """
    client = AsyncIOMotorClient(
        TEST_MONGODB_URL,
        maxPoolSize=10,
        minPoolSize=1,
        tz_aware=True,
    )
    yield client
    client.close()


@pytest_asyncio.fixture(scope="function")
async def init_test_db(mongo_client):
    """Initialize Beanie with a unique test database, dropped afterwards."""
    db_name = f"test_storemigrator_{uuid.uuid4().hex[:8]}"
    db = mongo_client[db_name]

    await init_beanie(
        database=db,
        document_models=get_document_models(),
    )
    yield db

    await mongo_client.drop_database(db_name)


@pytest.fixture
def job_queue() -> JobQueue:
    return JobQueue(lock_ttl_minutes=60)


# =============================================================================
# HTTP app
# =============================================================================


def create_test_app(queue: JobQueue, pool=None):
    """Create a FastAPI app for testing: routes of the main app, no lifespan."""
    from fastapi import FastAPI

    from storemigrator import __version__
    from storemigrator.main import app as main_app

    @asynccontextmanager
    async def test_lifespan(app: FastAPI):
        yield

    test_app = FastAPI(title="StoreMigrator Test", version=__version__, lifespan=test_lifespan)
    test_app.state.limiter = main_app.state.limiter
    test_app.state.job_queue = queue
    test_app.state.worker_pool = pool

    for route in main_app.routes:
        test_app.routes.append(route)

    return test_app


class RecordingPool:
    """Stands in for the worker pool; records kicks."""

    def __init__(self) -> None:
        self.kicks = 0
        self.running = True

    def kick(self) -> None:
        self.kicks += 1


@pytest.fixture
def recording_pool() -> RecordingPool:
    return RecordingPool()


@pytest_asyncio.fixture(scope="function")
async def client(init_test_db, job_queue, recording_pool, uploads_dir) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for the job endpoints, uploads going to a temp dir."""
    from storemigrator.routers import jobs
    from storemigrator.services.upload_storage import UploadStorageService

    from storemigrator.main import app as main_app

    app = create_test_app(job_queue, recording_pool)
    # Copied routes resolve overrides through the app that declared them
    main_app.dependency_overrides[jobs.get_upload_storage] = lambda: UploadStorageService(
        storage_path=uploads_dir, max_size_bytes=1024 * 1024
    )

    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    finally:
        main_app.dependency_overrides.pop(jobs.get_upload_storage, None)

"""Job store connection: one motor client per process, Beanie over it."""

from beanie import Document, init_beanie
from motor.motor_asyncio import AsyncIOMotorClient

from storemigrator.config import settings

_client: AsyncIOMotorClient | None = None


def get_document_models() -> list[type[Document]]:
    from storemigrator.models import ImportJob

    return [ImportJob]


async def init_db(mongodb_url: str | None = None, mongodb_database: str | None = None) -> None:
    """Connect to MongoDB and register the job documents with Beanie.

    Lock timestamps are compared against aware UTC datetimes, so the client
    is created with ``tz_aware=True``.
    """
    global _client

    _client = AsyncIOMotorClient(
        mongodb_url or settings.mongodb_url,
        minPoolSize=settings.min_pool_size,
        maxPoolSize=settings.max_pool_size,
        tz_aware=True,
    )
    await init_beanie(
        database=_client[mongodb_database or settings.mongodb_database],
        document_models=get_document_models(),
    )


async def close_db() -> None:
    global _client

    if _client is not None:
        _client.close()
        _client = None

"""FastAPI application entry point for the vector sync bridge."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.logging.logging_setup import setup_logging
from shared.helper.HelperConfig import HelperConfig
from shared.errors import EmbeddingProviderError, VectorStoreError
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.vector.VectorStoreClientInterface import VectorStoreClientInterface
from shared.clients.source.DocumentSourceInterface import DocumentSourceInterface
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.vector.VectorStoreClientManager import VectorStoreClientManager
from shared.clients.source.DocumentSourceManager import DocumentSourceManager
from shared.state.SyncStateStoreManager import SyncStateStoreManager
from services.vector_sync.EmbeddingOrchestrator import EmbeddingOrchestrator
from services.vector_sync.Reconciler import Reconciler
from server.core.QueryService import QueryService
from server.routers.HealthRouter import router as health_router
from server.routers.IndexRouter import router as index_router
from server.routers.QueryRouter import router as query_router
from server.routers.SyncRouter import router as sync_router

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    app.state.logging = logging
    app.state.helper_config = HelperConfig(logger=logging)
    sync_config = app.state.helper_config.get_sync_config()
    query_config = app.state.helper_config.get_query_config()

    source_client = DocumentSourceManager(helper_config=app.state.helper_config).get_client()
    vector_client = VectorStoreClientManager(helper_config=app.state.helper_config).get_client()
    embed_client = EmbedClientManager(helper_config=app.state.helper_config).get_client()
    state_store = SyncStateStoreManager(helper_config=app.state.helper_config).get_store()

    logging.info("Booting all clients...")
    for client in [source_client, vector_client, embed_client]:
        await client.boot()
    logging.info("All clients booted successfully.")

    app.state.source_client = source_client
    app.state.vector_client = vector_client
    app.state.embed_client = embed_client
    app.state.state_store = state_store

    # SyncSummary.embed_calls must only count sync embeddings
    sync_orchestrator = EmbeddingOrchestrator(helper_config=app.state.helper_config, embed_client=embed_client, sync_config=sync_config)
    query_orchestrator = EmbeddingOrchestrator(helper_config=app.state.helper_config, embed_client=embed_client, sync_config=sync_config)
    app.state.reconciler = Reconciler(
        helper_config=app.state.helper_config,
        document_source=source_client,
        embedding_orchestrator=sync_orchestrator,
        vector_client=vector_client,
        state_store=state_store,
        sync_config=sync_config,
    )
    app.state.query_service = QueryService(
        helper_config=app.state.helper_config,
        vector_client=vector_client,
        embedding_orchestrator=query_orchestrator,
        query_config=query_config,
    )

    await check_connections(source_client, vector_client, embed_client)

    # while the app is running...
    yield

    # when the app shuts down, close all client connections
    logging.info("Shutting down, closing all clients...")
    for client in [source_client, vector_client, embed_client]:
        await client.close()
    logging.info("All clients closed.")


app = FastAPI(
    title="vector_sync_bridge",
    description=(
        "Keeps a vector index in sync with a document source (Confluence, Paperless-ngx) "
        "and serves semantic search over it. "
        "Sync passes are triggered via POST /sync, queries are served via POST /query."
    ),
    version=app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(query_router)
app.include_router(sync_router)
app.include_router(index_router)


async def check_connections(
    source_client: DocumentSourceInterface,
    vector_client: VectorStoreClientInterface,
    embed_client: EmbedClientInterface,
) -> None:
    """Check connectivity to all configured backends on startup.

    Source failures are non-fatal (sync will fail later, but queries still work).
    Vector store and embedding failures are fatal, queries cannot be served without them.

    Raises:
        VectorStoreError: If the vector store is not reachable.
        EmbeddingProviderError: If the embedding provider is not reachable.
    """
    result: httpx.Response = await source_client.do_healthcheck()
    if not result.is_success:
        logging.warning(
            "Document source '%s' is not reachable (status %d). Sync may fail.",
            source_client.get_engine_name(),
            result.status_code,
        )

    result = await vector_client.do_healthcheck()
    if not result.is_success:
        raise VectorStoreError(
            f"Vector store '{vector_client.get_engine_name()}' is not reachable "
            f"(status {result.status_code}). Cannot serve queries.",
            status_code=result.status_code,
        )

    result = await embed_client.do_healthcheck()
    if not result.is_success:
        raise EmbeddingProviderError(
            f"Embedding provider '{embed_client.get_engine_name()}' is not reachable "
            f"(status {result.status_code}). Queries cannot be embedded.",
            status_code=result.status_code,
        )


if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting vector_sync_bridge API Server v%s from root dir: %s on port 8000...",
        app_version,
        os.environ.get("ROOT_DIR", "unknown"),
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)

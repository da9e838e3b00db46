"""Sync runner entry point.

Runs one sync pass of the configured document source into the vector index
and exits. Schedule it (cron, systemd timer, CI) for periodic syncing, or use
POST /sync on the API server.

Usage:
    python -m sync.sync_runner
"""

import asyncio
import sys

import httpx

from services.vector_sync.EmbeddingOrchestrator import EmbeddingOrchestrator
from services.vector_sync.Reconciler import Reconciler
from shared.clients.ClientInterface import ClientInterface
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.source.DocumentSourceInterface import DocumentSourceInterface
from shared.clients.source.DocumentSourceManager import DocumentSourceManager
from shared.clients.vector.VectorStoreClientInterface import VectorStoreClientInterface
from shared.clients.vector.VectorStoreClientManager import VectorStoreClientManager
from shared.errors import ClientRequestError, ConfigurationError, SyncAbortedError
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from shared.models.config import SyncConfig
from shared.models.sync import SyncSummary
from shared.state.SyncStateStoreManager import SyncStateStoreManager

DEFAULT_INDEX_DIMENSION = 768  # @cf/baai/bge-base-en-v1.5


def log_summary(logger, summary: SyncSummary) -> None:
    logger.info(
        "Sync summary for '%s': %d added, %d updated, %d deleted, %d unchanged, %d failed (%d embed calls).",
        summary.collection, len(summary.added), len(summary.updated), len(summary.deleted),
        len(summary.unchanged), len(summary.failed), summary.embed_calls,
    )
    for error in summary.errors:
        logger.warning("Sync error: %s", error)


async def check_connections(clients: list[ClientInterface]) -> None:
    """Check that every backend a sync pass needs answers its healthcheck.

    Raises:
        ClientRequestError: If a backend is unreachable or answers with a non-2xx status.
    """
    for client in clients:
        result: httpx.Response = await client.do_healthcheck()
        if not result.is_success:
            raise ClientRequestError(
                f"{client.get_client_type().capitalize()} backend '{client.get_engine_name()}' is not healthy "
                f"(status {result.status_code}).",
                status_code=result.status_code,
            )


async def run_sync(
    logger,
    config: HelperConfig,
    sync_config: SyncConfig,
    source_client: DocumentSourceInterface,
    vector_client: VectorStoreClientInterface,
    embed_client: EmbedClientInterface,
    reconciler: Reconciler,
) -> int:
    """Boot the clients, run one pass and close the clients again.

    Returns:
        int: Process exit code. 0 on success (item failures included), 1 if a backend
            is unhealthy or the pass was aborted.
    """
    clients = [source_client, vector_client, embed_client]
    try:
        for client in clients:
            await client.boot()
        await check_connections(clients)

        # Ensure the index exists before syncing
        if config.get_bool_val("VECTOR_AUTO_CREATE", default=False):
            dimension = sync_config.embed_dimension or DEFAULT_INDEX_DIMENSION
            if await vector_client.do_ensure_index(dimension, sync_config.embed_metric):
                logger.info("Created missing index '%s'.", vector_client.get_index_name())

        summary = await reconciler.do_sync()
        log_summary(logger, summary)
        return 0
    except (ConfigurationError, SyncAbortedError, ClientRequestError) as e:
        logger.error("Sync aborted: %s", e)
        return 1
    finally:
        for client in clients:
            await client.close()


async def main() -> int:
    """Run a single synchronisation pass with the configured backends."""
    logger = setup_logging()
    config = HelperConfig(logger=logger)
    sync_config = config.get_sync_config()

    source_client = DocumentSourceManager(helper_config=config).get_client()
    vector_client = VectorStoreClientManager(helper_config=config).get_client()
    embed_client = EmbedClientManager(helper_config=config).get_client()
    state_store = SyncStateStoreManager(helper_config=config).get_store()
    reconciler = Reconciler(
        helper_config=config,
        document_source=source_client,
        embedding_orchestrator=EmbeddingOrchestrator(helper_config=config, embed_client=embed_client, sync_config=sync_config),
        vector_client=vector_client,
        state_store=state_store,
        sync_config=sync_config,
    )
    return await run_sync(logger, config, sync_config, source_client, vector_client, embed_client, reconciler)


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))

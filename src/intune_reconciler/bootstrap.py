from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from intune_reconciler.config import EngineSettings, SettingsManager
from intune_reconciler.graph.client import GraphClient, GraphClientConfig, TokenProvider
from intune_reconciler.graph.transport import GraphTransport
from intune_reconciler.services import AssignmentService
from intune_reconciler.utils import LoggingOptions, configure_logging, get_logger


logger = get_logger(__name__)


@dataclass(slots=True)
class ReconcilerEngine:
    settings: EngineSettings
    client: GraphClient
    transport: GraphTransport
    assignments: AssignmentService

    async def close(self) -> None:
        await self.client.close()

    async def __aenter__(self) -> "ReconcilerEngine":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


def build_engine(
    token_provider: TokenProvider,
    settings: EngineSettings | None = None,
    *,
    env_file: Path | None = None,
    configure_logs: bool = False,
) -> ReconcilerEngine:
    """Wire settings, Graph client, transport and the assignment service.

    ``token_provider`` is called for every request and must return a bearer
    token with ``DeviceManagementApps.ReadWrite.All``; acquiring it is the
    caller's responsibility.
    """

    resolved = settings or SettingsManager(env_file=env_file).load()
    if configure_logs:
        configure_logging(LoggingOptions.from_level(resolved.log_level))

    client = GraphClient(token_provider, GraphClientConfig.from_settings(resolved))
    transport = GraphTransport(client, max_retries=resolved.batch_max_retries)
    service = AssignmentService(transport, resolved)
    logger.debug(
        "Reconciler engine initialised",
        graph_base_url=resolved.graph_base_url,
        api_version=resolved.api_version,
        max_batch_size=resolved.max_batch_size,
        max_concurrent_batches=resolved.max_concurrent_batches,
    )
    return ReconcilerEngine(
        settings=resolved,
        client=client,
        transport=transport,
        assignments=service,
    )


__all__ = ["ReconcilerEngine", "build_engine"]

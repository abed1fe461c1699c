"""Main daemon process for QIG search."""

import asyncio
import signal
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import psutil
from aiohttp import web
from loguru import logger

from .api import create_api_app
from .config import Config, LoggingConfig
from .deriver import AddressDeriver, BrainWalletDeriver
from .keywords import KeywordSets
from .metrics import MetricsCollector, get_metrics
from .orchestrator import OrchestratorClient
from .phrases import PhraseGenerator
from .scoring import HeuristicScorer
from .search import SearchController
from .store import CandidateStore
from .targets import TargetRegistry
from .validator import PhraseValidator


class QIGSearchDaemon:
    """Main daemon wiring the search core to the HTTP API."""

    def __init__(self,
                 config: Config,
                 deriver: Optional[AddressDeriver] = None,
                 metrics: Optional[MetricsCollector] = None):
        self.config = config
        self.start_time = datetime.utcnow()
        self.metrics = metrics or get_metrics()

        # Core services, constructed once per process
        self.store = CandidateStore(capacity=config.store.capacity)
        self.targets = TargetRegistry(config.targets)
        self.deriver = deriver or BrainWalletDeriver(compressed=config.deriver.compressed)
        self.scorer = HeuristicScorer(KeywordSets.load(config.scoring.keywords_path))
        self.generator = PhraseGenerator()
        self.controller = SearchController(
            store=self.store,
            targets=self.targets,
            deriver=self.deriver,
            scorer=self.scorer,
            validator=PhraseValidator(),
            config=config.search,
            metrics=self.metrics
        )
        self.orchestrator = (
            OrchestratorClient(config.orchestrator) if config.orchestrator.enabled else None
        )

        # HTTP API
        self.api_app = None
        self.api_runner = None
        self.api_site = None
        self._stopped = asyncio.Event()

    async def start(self) -> None:
        """Start all daemon services."""
        logger.info("Starting QIG search daemon...")

        if self.orchestrator is not None:
            if not await self.orchestrator.check_health():
                logger.warning("Initial orchestrator health check failed - will retry on demand")

        await self._start_api()
        logger.info("QIG search daemon started successfully")

    async def stop(self) -> None:
        """Stop all daemon services."""
        if self._stopped.is_set():
            return
        logger.info("Stopping QIG search daemon...")

        await self.controller.close()

        if self.api_site:
            await self.api_site.stop()
        if self.api_runner:
            await self.api_runner.cleanup()
        if self.orchestrator is not None:
            await self.orchestrator.close()

        self._stopped.set()
        logger.info("QIG search daemon stopped")

    async def wait_stopped(self) -> None:
        await self._stopped.wait()

    async def _start_api(self) -> None:
        """Start the HTTP API server."""
        self.api_app = create_api_app(self)
        self.api_runner = web.AppRunner(self.api_app)
        await self.api_runner.setup()

        host, port = self.config.server.host, self.config.server.port
        self.api_site = web.TCPSite(self.api_runner, host, port)
        await self.api_site.start()

        logger.info(f"API server started on http://{host}:{port}")

    def get_status(self) -> dict:
        """Get daemon status and statistics."""
        process = psutil.Process()
        uptime = (datetime.utcnow() - self.start_time).total_seconds()

        return {
            "status": "running",
            "version": "0.1.0",
            "uptime": f"{uptime:.0f}s",
            "stats": {
                "candidates": len(self.store),
                "store_capacity": self.store.capacity,
                "targets": len(self.targets),
                "search_state": self.controller.state.value,
                "tested": self.controller.stats().tested,
                "memory_mb": process.memory_info().rss / 1024 / 1024,
                "cpu_percent": process.cpu_percent()
            },
            "config": {
                "chunk_size": self.config.search.chunk_size,
                "high_phi_threshold": self.config.search.high_phi_threshold,
                "orchestrator_enabled": self.config.orchestrator.enabled
            }
        }


def setup_logging(config: LoggingConfig) -> None:
    """Configure loguru sinks."""
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        level=config.level
    )

    if config.log_dir is not None:
        log_dir = Path(config.log_dir).expanduser()
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_dir / "qigsearch.log",
            rotation="1 day",
            retention="7 days",
            level="DEBUG"
        )


async def main(config_path: Optional[str] = None):
    """Main entry point for the daemon."""
    try:
        config = Config.load(Path(config_path) if config_path else None)
    except FileNotFoundError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    setup_logging(config.logging)

    daemon = QIGSearchDaemon(config)

    def request_shutdown(sig):
        logger.info(f"Received signal {sig.name}, shutting down...")
        asyncio.create_task(daemon.stop())

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, request_shutdown, sig)

    try:
        await daemon.start()
        await daemon.wait_stopped()
    except Exception as e:
        logger.exception(f"Daemon error: {e}")
    finally:
        await daemon.stop()


if __name__ == "__main__":
    asyncio.run(main())

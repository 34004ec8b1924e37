"""Main application entry point."""

import argparse
import functools
import logging
import signal
import sys
from typing import List, Optional

from .api import create_app
from .broker import create_broker_client
from .config import get_config
from .connections import ConnectionManager
from .holdings_service import HoldingsService
from .persistence import JsonFileCredentialStore, PortfolioStore, StorageError, create_data_provider
from .sync import NoConnectedBrokersError, SyncOrchestrator, SyncReport

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


class HoldingsSyncService:
    """Main holdings sync application."""

    def __init__(self):
        self.config = get_config()
        self.portfolio_store = None
        self.credential_store = None
        self.orchestrator = None
        self.connections = None
        self.holdings = None
        self.app = None

        logging.getLogger().setLevel(self.config.log_level)

        # Setup signal handlers
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}. Shutting down...")
        self.shutdown()
        sys.exit(0)

    def initialize(self):
        """Initialize all components."""
        logger.info("Initializing holdings sync service...")

        try:
            provider = create_data_provider(self.config.persistence)
            self.portfolio_store = PortfolioStore(provider, self.config.user_id)
            self.portfolio_store.initialize()
            logger.info(f"Initialized {self.config.persistence.data_mode} data storage")
        except Exception as e:
            logger.error(f"Error initializing data storage: {e}")
            raise

        self.credential_store = JsonFileCredentialStore(self.config.persistence.credentials_store_path)

        client_factory = functools.partial(create_broker_client, config=self.config.broker)
        self.orchestrator = SyncOrchestrator(self.portfolio_store, self.credential_store, client_factory)
        self.connections = ConnectionManager(
            self.portfolio_store,
            self.credential_store,
            client_factory=client_factory,
            broker_config=self.config.broker,
        )
        try:
            self.connections.prefill_credentials(self.config.broker)
        except StorageError as e:
            logger.error(f"Could not prefill broker credentials: {e}")
        self.holdings = HoldingsService(self.portfolio_store)

        self.app = create_app(
            orchestrator=self.orchestrator,
            connections=self.connections,
            holdings=self.holdings,
            api_token=self.config.api.api_token,
        )
        logger.info(f"Initialized HTTP API on port {self.config.api.port}")

    def sync_once(self) -> Optional[SyncReport]:
        """Run a single sync of every connected broker."""
        try:
            report = self.orchestrator.sync_all()
        except NoConnectedBrokersError as e:
            logger.warning(str(e))
            return None
        for outcome in report.outcomes:
            status = "ok" if outcome.success else f"failed: {outcome.error}"
            logger.info(f"  {outcome.broker_id.display_name}: {outcome.holdings_count} holdings ({status})")
        return report

    def run(self):
        """Run the HTTP API."""
        self.initialize()

        logger.info("=" * 60)
        logger.info("Holdings Sync Service Started")
        logger.info(f"Brokers: {'Simulated' if self.config.broker.use_simulated else 'Live APIs'}")
        logger.info(f"Data mode: {self.config.persistence.data_mode}")
        connected = [c.display_name for c in self.connections.list_connections() if c.is_connected]
        logger.info(f"Connected brokers: {', '.join(connected) if connected else 'None'}")
        logger.info("=" * 60)

        try:
            self.app.run(
                host=self.config.api.host,
                port=self.config.api.port,
                debug=False,
            )
        except KeyboardInterrupt:
            logger.info("Shutting down...")
            self.shutdown()

    def shutdown(self):
        """Shutdown the service."""
        logger.info("Shutting down holdings sync service...")
        if self.orchestrator and self.orchestrator.in_progress:
            logger.warning("Shutting down while a sync is in progress; its current broker may not be saved")


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Sync broker holdings into a local portfolio")
    parser.add_argument("--sync-once", action="store_true", help="Run one sync and exit instead of serving the API")
    args = parser.parse_args(argv)

    service = HoldingsSyncService()
    if args.sync_once:
        service.initialize()
        report = service.sync_once()
        sys.exit(0 if report is None or report.succeeded else 1)
    service.run()


if __name__ == "__main__":
    main()

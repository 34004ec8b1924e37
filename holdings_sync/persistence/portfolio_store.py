"""Serialized read-modify-write access to the portfolio document."""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from .data_provider import DataProvider
from .models import PortfolioData

logger = logging.getLogger(__name__)


class PortfolioStore:
    """Single-writer access to one user's portfolio document.

    Every mutation goes through ``update()``, which holds a lock for the
    whole load-modify-save cycle so a sync and a manual edit cannot
    overwrite each other.
    """

    def __init__(self, provider: DataProvider, user_id: str):
        self.provider = provider
        self.user_id = user_id
        self._lock = threading.RLock()

    def initialize(self) -> None:
        self.provider.initialize()

    def load(self) -> PortfolioData:
        """Load the document for reading, or an empty one when nothing is stored or readable."""
        with self._lock:
            data = self.provider.load_data(self.user_id)
            if data is None:
                logger.debug(f"No stored portfolio for {self.user_id}, starting empty")
                data = PortfolioData()
            return data

    @contextmanager
    def update(self) -> Iterator[PortfolioData]:
        """
        Load the document, yield it for modification, then save it.

        Only a missing document starts empty. Nothing is saved if the block
        raises.

        Raises:
            StorageError: If the stored document could not be read
        """
        with self._lock:
            data = self.provider.read_data(self.user_id)
            if data is None:
                logger.info(f"No stored portfolio for {self.user_id}, creating one")
                data = PortfolioData()
            yield data
            if not self.provider.save_data(self.user_id, data):
                logger.warning(f"Portfolio for {self.user_id} could not be persisted")

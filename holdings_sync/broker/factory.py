"""Broker client factory."""

import logging
from typing import Optional

from ..config import BrokerConfig, get_config
from .angelone import AngelOneClient
from .broker import BrokerClient
from .fyers import FyersClient
from .models import BrokerId
from .simulated import SimulatedBrokerClient
from .upstox import UpstoxClient

logger = logging.getLogger(__name__)

CLIENT_CLASSES = {
    BrokerId.UPSTOX: UpstoxClient,
    BrokerId.ANGELONE: AngelOneClient,
    BrokerId.FYERS: FyersClient,
}


def create_broker_client(
    broker_id,
    config: Optional[BrokerConfig] = None,
    use_simulated: Optional[bool] = None,
) -> BrokerClient:
    """
    Create the client for a broker.

    Args:
        broker_id: BrokerId or its string value
        config: Broker configuration (defaults to the global configuration)
        use_simulated: Override config.use_simulated

    Returns:
        BrokerClient instance

    Raises:
        ValueError: If the broker is unknown
    """
    broker_id = BrokerId.parse(broker_id)
    if config is None:
        config = get_config().broker
    if use_simulated is None:
        use_simulated = config.use_simulated

    if use_simulated:
        logger.debug(f"Using simulated client for {broker_id.display_name}")
        return SimulatedBrokerClient(broker_id)

    client_class = CLIENT_CLASSES[broker_id]
    return client_class(timeout=config.request_timeout, max_retries=config.max_retries)

from .simulated_client import SAMPLE_HOLDINGS, SimulatedBrokerClient

__all__ = ["SAMPLE_HOLDINGS", "SimulatedBrokerClient"]

from .upstox_client import UpstoxClient

__all__ = ["UpstoxClient"]

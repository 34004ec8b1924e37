from .fyers_client import FyersClient, app_id_hash

__all__ = ["FyersClient", "app_id_hash"]

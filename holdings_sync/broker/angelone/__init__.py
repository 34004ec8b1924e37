from .angelone_client import AngelOneClient

__all__ = ["AngelOneClient"]

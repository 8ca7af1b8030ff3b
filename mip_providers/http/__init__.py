from .client import BackendHttpClient, TokenSource

__all__ = ["BackendHttpClient", "TokenSource"]

"""HTTP Keyserver Protocol client."""
from .client import HkpClient, normalize_server_url

__all__ = ["HkpClient", "normalize_server_url"]

"""Services: money helpers, the remote API client, and request scopes."""
from .api_client import GharPaluwaClient
from .scope import RequestScope

__all__ = ["GharPaluwaClient", "RequestScope"]

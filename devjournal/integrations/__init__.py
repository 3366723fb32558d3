from __future__ import annotations

from .documents import DocumentsClient
from .http import RemoteFetchError
from .linear import LinearClient
from .slite import SliteClient

__all__ = ["DocumentsClient", "LinearClient", "RemoteFetchError", "SliteClient"]

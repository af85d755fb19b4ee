"""
Connection module.

httpx-based clients for the Data API and the DevOps API.
"""

from .base import BaseHttpClient
from .data_api import DataAPIHttpClient
from .devops import DEFAULT_DEVOPS_URL, DevOpsAPIHttpClient, DevOpsAPIResponse

__all__ = [
    "DEFAULT_DEVOPS_URL",
    "BaseHttpClient",
    "DataAPIHttpClient",
    "DevOpsAPIHttpClient",
    "DevOpsAPIResponse",
]

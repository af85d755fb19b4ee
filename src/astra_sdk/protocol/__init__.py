"""
Data API protocol module.

Command/response message formats and big-number aware JSON.
"""

from .command import CommandTarget, DataAPIResponse
from .wire import dumps, loads

__all__ = [
    "CommandTarget",
    "DataAPIResponse",
    "dumps",
    "loads",
]

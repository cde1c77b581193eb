"""PRTG request execution and streaming client."""

from .bootstrap import bootstrap_create_client
from .client import PrtgClient

__all__ = ["PrtgClient", "bootstrap_create_client"]

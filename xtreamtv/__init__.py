"""
XtreamTV - Xtream provider client core

Data access and caching for Xtream-Codes style IPTV providers:
- Authentication and session info
- Live streams, categories, EPG and movie metadata with TTL caching
- Retry with backoff, cancellation and in-flight request deduplication
- Direct playback URL construction
- Persistent watch progress
"""

__version__ = "1.0.0"
__author__ = "XtreamTV Contributors"
__license__ = "MIT"

from xtreamtv.config import get_config, load_config
from xtreamtv.provider import ProviderClient, ProviderCredentials

__all__ = [
    "__version__",
    "ProviderClient",
    "ProviderCredentials",
    "get_config",
    "load_config",
]

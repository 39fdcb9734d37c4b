# ============================================
# USAGE STRATEGIES PACKAGE
# ============================================
# Interchangeable HTTP clients, tried in order by the dispatcher:
# - httpx: standard async request API
# - curl_cffi: raw client with browser TLS impersonation
# - aiohttp: general-purpose async client
#
# Cookie priming uses curl_cffi first, httpx as fallback.
# ============================================

from .aiohttp_strategy import AiohttpStrategy
from .base import StrategyResponse, TransportStrategy
from .curl_cffi_strategy import CurlCffiStrategy
from .httpx_strategy import HttpxStrategy

__all__ = [
    # Base
    "TransportStrategy",
    "StrategyResponse",
    # Clients
    "HttpxStrategy",
    "CurlCffiStrategy",
    "AiohttpStrategy",
]

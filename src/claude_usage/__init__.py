from .services.usage import FailureKind, FetchOutcome, UsageDispatcher, UsageMonitor, fetch_usage

__all__ = [
    "FailureKind",
    "FetchOutcome",
    "UsageDispatcher",
    "UsageMonitor",
    "fetch_usage",
]

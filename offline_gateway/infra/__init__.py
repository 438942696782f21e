"""Infrastructure helpers: network fetch adapter and detached task tracking."""

from offline_gateway.infra.background import BackgroundTasks
from offline_gateway.infra.network import Fetch, transport_fetch

__all__ = [
    "BackgroundTasks",
    "Fetch",
    "transport_fetch",
]

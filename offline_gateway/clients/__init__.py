"""Connected application instances and the messages sent to them."""

from offline_gateway.clients.manager import (
    Client,
    ClientRegistry,
    MessagePort,
    WebSocketClient,
)
from offline_gateway.clients.notifier import ClientNotifier

__all__ = [
    "Client",
    "ClientNotifier",
    "ClientRegistry",
    "MessagePort",
    "WebSocketClient",
]

"""HTTP and websocket surface of the gateway."""

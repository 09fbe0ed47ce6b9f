"""HTTP and WebSocket adapters."""

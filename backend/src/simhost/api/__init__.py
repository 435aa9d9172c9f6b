"""HTTP and SSE surface of the simulation server."""

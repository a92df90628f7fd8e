"""WebSocket endpoint module for filedeck.

Serves the command and search streams. Each connection is owned by one
handler from the first message until the channel closes.
"""

"""Transport adapter for filedeck.

Turns an inbound WebSocket into the duplex message channel that the
command and search handlers read from and stream into.
"""

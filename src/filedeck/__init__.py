"""filedeck -- real-time command and search streams for a web file manager.

This package serves two per-connection WebSocket protocols: remote
command execution with live output streaming, and recursive filesystem
search with live result streaming. Both run inside the caller's
filesystem scope and honor its command whitelist and path rules.
"""

__version__ = "0.1.0"

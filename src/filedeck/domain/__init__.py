"""Domain models shared by the filedeck stream handlers."""

"""storage/ -- Durable key-value slots used by the auth core.

Layer rule: storage/ imports only stdlib + third-party libraries.
It does NOT import from auth/.
"""

"""auth/ -- Authentication and user-lifecycle core for the campaign dashboard.

Layer rule: auth/ imports from core/ and storage/ (through the KeyValueStore
protocol) but nothing imports auth/ from those packages.
Entry point: auth.manager.AuthManager.
"""

"""core/ -- Kernel of the campaign auth core: configuration and clock.

Layer rule: core/ imports only stdlib + third-party libraries.
It does NOT import from auth/ or storage/.
"""

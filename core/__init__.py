"""Core caching, request-optimisation and refresh layer for the venue API.

Import submodules directly (``core.service``, ``core.cache``, ``core.venue``...);
this package deliberately re-exports nothing so importing a leaf module
never drags the whole stack in.
"""

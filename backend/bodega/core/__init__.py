"""Bodega WMS - Core: errors, auth, responses and Redis."""

"""Bodega WMS - Database package."""

"""Bodega WMS - Service layer."""

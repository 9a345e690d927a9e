"""Bodega WMS - HTTP API."""

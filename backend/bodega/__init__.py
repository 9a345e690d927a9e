"""Bodega WMS - warehouse location, inventory unit and dispatch verification service."""

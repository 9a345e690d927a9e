"""Bodega WMS - Headless dispatch-check and receiving state machines."""

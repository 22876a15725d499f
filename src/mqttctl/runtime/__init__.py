"""Routing runtime: router, handler table, controller and logging helpers."""

"""Composition root for wiring dependencies.

Only this package reads the environment and picks concrete adapters.
The handler, API and scripts ask it for a ready orchestrator.
"""

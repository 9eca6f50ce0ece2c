"""Integration adapters.

Adapters connect the core services to external systems such as Discord.
"""

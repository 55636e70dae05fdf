"""
Service permission editing feature module.

Job roles hold a baseline of granted catalog nodes; users hold per-node
exceptions on top of their job's baseline.
"""

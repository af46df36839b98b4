"""Kernel utilities shared across the history engine.

Rules:
- Kernel code must not import from the ORM binding or the builder.
- Kernel utilities should stay small and stable; avoid capture logic here.
"""

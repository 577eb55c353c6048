"""
Manifestor: keeps the core binary manifest and routing rule indices in sync
with their upstream sources.
"""

__version__ = "0.1.0"

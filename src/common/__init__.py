"""
Common building blocks for field encryption.

Modules:
- settings: environment-driven codec configuration
- codec: tagged AES-CBC encoding/decoding of single field values
- roles: role-set parsing and the visibility gate
- policy: save-path resolution for encrypted fields
"""

__all__ = [
    "settings",
    "codec",
    "roles",
    "policy",
]

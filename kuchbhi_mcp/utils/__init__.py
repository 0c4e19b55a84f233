# kuchbhi_mcp/utils/__init__.py

"""Encryption helpers shared by the grant store and the approval cookie."""

from .security import FernetEncryptor, generate_fernet_key

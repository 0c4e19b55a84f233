# kuchbhi_mcp/external_services/__init__.py

# kuchbhi_mcp/external_services/google/__init__.py
from . import workspace_api

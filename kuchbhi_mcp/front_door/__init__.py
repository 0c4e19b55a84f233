# kuchbhi_mcp/front_door/__init__.py
# Authorize -> approve -> Google -> callback

from .approval import ApprovalDialog, get_approval_dialog, APPROVED_CLIENTS_COOKIE
from .endpoints import front_door_router

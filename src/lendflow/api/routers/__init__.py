"""Lendflow API routers.

- activation: wizard steps and the user's own documents
- profile: consolidated profile view for the profile page
- admin: activation review and document management (admin role)
"""

from lendflow.api.routers.activation import router as activation_router
from lendflow.api.routers.admin import router as admin_router
from lendflow.api.routers.profile import router as profile_router

__all__ = [
    "activation_router",
    "admin_router",
    "profile_router",
]

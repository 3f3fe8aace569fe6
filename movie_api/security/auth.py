"""
Admin Authorization Module

Guards the administrative cache endpoints.

Token issuance and user authentication happen upstream; that layer leaves
the caller's id and role on `request.state`. This module only decides
whether a request carries administrator privilege, either through that
role or through a static operator token sent in the X-Admin-Token header.
"""

import secrets
from typing import Optional

from fastapi import Request
from loguru import logger

from movie_api.core.constants import ERROR_ADMIN_REQUIRED, HEADER_ADMIN_TOKEN, ROLE_ADMIN
from movie_api.core.exceptions import PermissionDeniedError


class AdminGuard:
    """
    FastAPI dependency admitting only administrators.

    Example:
        >>> guard = AdminGuard(require_admin=True, api_token="s3cret")
        >>> router = APIRouter(dependencies=[Depends(guard)])
    """

    def __init__(self, require_admin: bool = True, api_token: Optional[str] = None):
        """
        Initialize the guard.

        Args:
            require_admin: False disables the check (local development only)
            api_token: Operator token accepted in the X-Admin-Token header
        """
        self.require_admin = require_admin
        self.api_token = api_token
        if not require_admin:
            logger.warning("Admin endpoints are not protected (admin.require_admin is false)")

    @classmethod
    def from_config(cls, config_obj) -> "AdminGuard":
        return cls(
            require_admin=config_obj.get('admin.require_admin', default=True, expected_type=bool),
            api_token=config_obj.get('admin.api_token', default=None),
        )

    def is_admin(self, request: Request) -> bool:
        if getattr(request.state, "role", None) == ROLE_ADMIN:
            return True

        presented = request.headers.get(HEADER_ADMIN_TOKEN)
        if self.api_token and presented:
            return secrets.compare_digest(presented.encode(), str(self.api_token).encode())
        return False

    async def __call__(self, request: Request) -> None:
        """
        Raises:
            PermissionDeniedError: If the caller is not an administrator
        """
        if not self.require_admin:
            return
        if not self.is_admin(request):
            logger.warning(f"Rejected admin request to {request.url.path}")
            raise PermissionDeniedError(ERROR_ADMIN_REQUIRED)

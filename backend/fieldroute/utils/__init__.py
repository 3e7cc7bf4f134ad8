"""Utils package initialization."""

from fieldroute.utils.logging import RouteLogger, get_logger, setup_logging
from fieldroute.utils.security import (
    authenticate,
    create_access_token,
    decode_access_token,
    ensure_own_schedule,
    get_current_user,
    get_password_hash,
    require_dispatcher,
    require_role,
    require_technician,
    verify_password,
)

__all__ = [
    # Security
    "verify_password",
    "get_password_hash",
    "create_access_token",
    "decode_access_token",
    "authenticate",
    "get_current_user",
    "ensure_own_schedule",
    "require_role",
    "require_dispatcher",
    "require_technician",
    # Logging
    "get_logger",
    "setup_logging",
    "RouteLogger",
]

"""
Admin session commands (login, logout, whoami) over the configured auth service.
"""

import logging
from typing import Any, Dict, Optional

import requests

from ..core.auth import DEFAULT_REFRESH_MARGIN, AuthManager
from ..core.command_context import CommandContext
from ..core.paths import resolve_data_file
from ..core.secrets import resolve_api_key

logger = logging.getLogger(__name__)

SESSION_FILE = "session.json"


def build_manager(ctx: CommandContext, session=None) -> AuthManager:
    """Create an AuthManager from the ``auth`` config section."""
    settings = ctx.config_manager.get_section('auth')
    anon_key = resolve_api_key(
        settings.get('anon_key_env', 'NEWSDESK_AUTH_ANON_KEY'),
        secrets_dir=ctx.config_manager.secrets_dir,
    )
    return AuthManager(
        settings.get('url') or '',
        anon_key,
        resolve_data_file(settings.get('session_file', SESSION_FILE), ensure_parent=True),
        refresh_margin=int(settings.get('refresh_margin_seconds', DEFAULT_REFRESH_MARGIN)),
        db=ctx.db,
        session=session,
    )


def login(config_path: Optional[str], email: str, password: str, *, session=None) -> Dict[str, Any]:
    manager = build_manager(CommandContext(config_path), session=session)
    return manager.sign_in(email, password)


def logout(config_path: Optional[str] = None, *, session=None) -> None:
    build_manager(CommandContext(config_path), session=session).sign_out()


def whoami(config_path: Optional[str] = None, *, session=None) -> Optional[Dict[str, Any]]:
    """Return the signed-in user, refreshing the token first when it is about to expire."""
    manager = build_manager(CommandContext(config_path), session=session)
    if not manager.check_health():
        return None
    try:
        manager.refresh_if_needed()
    except (requests.ConnectionError, requests.Timeout) as e:
        logger.warning(f"Auth service unreachable, showing the stored session: {e}")
        return {**manager.user, 'offline': True} if manager.user else None
    return manager.user

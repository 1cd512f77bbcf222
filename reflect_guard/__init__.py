"""Reflect Guard — Authorization engine for a premium social content service.

Decides, per request, whether a user may view a post, create a reflection on
it, or request a social connection, based on premium-subscription state,
ownership and content flags.

Architecture layers (bottom to top):
    1. Stores     — Profile / post / session lookups (SQLite reference backend)
    2. Security   — Permission bundles, TTL cache, reflection + connection checkers
    3. Audit      — Append-only decision log, security alerts, usage metrics
    4. Moderation — Mandatory / intelligent / bypassed routing per submission
    5. API        — FastAPI app, PermissionMiddleware, admin read endpoints
"""

__version__ = "0.1.0"
__author__ = "Reflect Guard Contributors"
__license__ = "Apache-2.0"

from reflect_guard.security.models import PremiumStatus, UserPermissions, UserTier

__all__ = [
    "__version__",
    "PremiumStatus",
    "UserPermissions",
    "UserTier",
]

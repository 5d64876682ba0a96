"""
auth/access.py -- Stateless access decisions.

evaluate() is the role check every protected route runs. The order of checks
is fixed:
  1. No caller (token missing, invalid, expired, or subject deleted)
     -> Unauthorized. Role checking never runs for an anonymous request.
  2. Empty required-role set -> allow. The route only needs *an* identity.
  3. caller.role in required_roles -> allow, otherwise Forbidden carrying the
     required set for diagnostics.

Public routes simply do not call evaluate(); they have no auth dependency.

require_bond() is an extra predicate layered after the role check for AI
dialogue only: non-admin callers must hold a bond with the avatar.

require_self_or_roles() guards per-user sub-resources (bonds): a caller may
act on its own record, staff roles may act on anyone's.

Layer rule: no imports from api/ or avatars/.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Optional

from auth.models import Caller, Role, User
from core.errors import Forbidden, Unauthorized


def evaluate(required_roles: Iterable[Role], caller: Optional[Caller]) -> Caller:
    """Authorize caller against an unordered set of acceptable roles.

    Returns the caller on success so dependencies can pass it straight through.
    """
    if caller is None:
        raise Unauthorized()
    required = frozenset(Role(r) for r in required_roles)
    if not required or caller.role in required:
        return caller
    raise Forbidden("Insufficient role.", required_roles=required)


def require_bond(caller: Caller, user: User, avatar_slug: str) -> None:
    """Raise Forbidden unless the caller may talk to the avatar.

    Admins bypass bond gating unconditionally.
    """
    if caller.role == Role.ADMIN:
        return
    if avatar_slug not in user.bonds:
        raise Forbidden(f'You have not unlocked or bonded with "{avatar_slug}" yet.')


def require_self_or_roles(caller: Caller, user_id: int, roles: Iterable[Role]) -> Caller:
    """Allow a caller to act on its own record, or on any record with a listed role."""
    if caller.user_id == user_id:
        return caller
    return evaluate(roles, caller)

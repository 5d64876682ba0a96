"""
auth/service.py -- Credential flows built on the store, hasher and token service.

authenticate_user() is the only place a login password is checked. It always
runs bcrypt, whether or not the email exists [C1]:
  - Unknown email: bcrypt runs against DUMMY_HASH (same cost as a real check)
  - Wrong password: bcrypt runs against the real hash (same cost)
Do NOT inline find_by_email() + verify_password() in a route -- that
re-introduces the timing side channel.

Layer rule: no imports from api/ or avatars/.
"""

from __future__ import annotations

import logging
from typing import Optional

from auth.models import User
from auth.passwords import DUMMY_HASH, verify_password
from auth.store import UserStore
from auth.tokens import TokenService
from core.errors import NotFound, Unauthorized

logger = logging.getLogger("avatarengine.auth")


def authenticate_user(store: UserStore, email: str, password: str) -> Optional[User]:
    """Return the User if email and password match, None on any failure."""
    user = store.find_by_email(email)
    if user is None:
        # Equalize timing -- do NOT return early before running bcrypt [C1]
        verify_password(password, DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


def login(store: UserStore, tokens: TokenService, email: str, password: str) -> tuple[str, User]:
    """Validate credentials and issue a token.

    Raises Unauthorized with one generic message whether the email or the
    password was wrong.
    """
    user = authenticate_user(store, email, password)
    if user is None:
        logger.info("Failed login attempt")
        raise Unauthorized()
    token = tokens.issue(user.id, user.email, user.role)
    return token, user


def change_password(store: UserStore, user_id: int, old_password: str, new_password: str) -> User:
    """Replace a user's password after re-verifying the current one.

    Raises NotFound if the user vanished, Unauthorized if old_password is wrong.
    """
    user = store.get_by_id(user_id)
    if user is None:
        raise NotFound("User not found.")
    if not verify_password(old_password, user.hashed_password):
        raise Unauthorized("Old password is incorrect.")
    store.set_password(user_id, new_password)
    logger.info("Password changed for user id=%s", user_id)
    return user

"""
Logged-in identity handling.

The session stores a small dict for the signed-in account. Guards turn it
into a CurrentUser and hand that to the view as its first argument, so
views never reach into the session themselves.
"""
from collections import namedtuple
from enum import Enum
from functools import wraps

from flask import redirect, session, url_for

from app_models import User
from extensions import db

FORBIDDEN_MANAGER = ('Forbidden (manager only)', 403)


class Role(Enum):
    USER = 'user'
    MANAGER = 'manager'
    ADMIN = 'admin'

    @property
    def label(self):
        return self.value.title()


def normalize_role(level):
    """Map stored levels ('a', 'admin', 'm', 'manager', 'u', ...) onto Role."""
    if isinstance(level, Role):
        return level
    value = str(level or 'user').strip().lower()
    if value in ('a', 'admin'):
        return Role.ADMIN
    if value in ('m', 'manager'):
        return Role.MANAGER
    return Role.USER


class CurrentUser(namedtuple('CurrentUser', ['id', 'username', 'role', 'participant_id'])):
    __slots__ = ()

    @property
    def is_manager(self):
        return self.role in (Role.MANAGER, Role.ADMIN)

    @property
    def is_admin(self):
        return self.role is Role.ADMIN


def login_user(user):
    session.clear()
    session.permanent = True
    session['user'] = {
        'id': user.id,
        'username': user.username,
        'role': normalize_role(user.level).value,
        'participant_id': user.participant_id,
    }


def logout_user():
    session.clear()


def current_identity():
    data = session.get('user')
    if not data:
        return None
    return CurrentUser(
        id=data.get('id'),
        username=data.get('username'),
        role=normalize_role(data.get('role')),
        participant_id=data.get('participant_id'),
    )


def login_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = current_identity()
        if user is None:
            return redirect(url_for('auth.login'))
        return f(user, *args, **kwargs)
    return decorated_function


def manager_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = current_identity()
        if user is None or not user.is_manager:
            return FORBIDDEN_MANAGER
        # The account may have been demoted or removed since login
        account = db.session.get(User, user.id) if user.id is not None else None
        if account is None:
            logout_user()
            return FORBIDDEN_MANAGER
        user = user._replace(role=normalize_role(account.level))
        if not user.is_manager:
            return FORBIDDEN_MANAGER
        return f(user, *args, **kwargs)
    return decorated_function

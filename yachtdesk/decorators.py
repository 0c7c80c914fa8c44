from functools import wraps

from flask import abort, session
from flask_login import current_user

from yachtdesk.services.scope_service import SessionContext

IMPERSONATED_ROLE_KEY = "impersonated_role"
IMPERSONATED_YACHT_KEY = "impersonated_yacht_id"


def current_context():
    """Session context for the signed-in user, including any impersonation overlay."""
    return SessionContext.for_user(
        current_user,
        impersonated_role=session.get(IMPERSONATED_ROLE_KEY),
        impersonated_yacht_id=session.get(IMPERSONATED_YACHT_KEY),
    )


def store_context(ctx):
    session[IMPERSONATED_ROLE_KEY] = ctx.impersonated_role
    session[IMPERSONATED_YACHT_KEY] = ctx.impersonated_yacht_id


def clear_context():
    session.pop(IMPERSONATED_ROLE_KEY, None)
    session.pop(IMPERSONATED_YACHT_KEY, None)


def role_required(*roles):
    """Allow the view only when the effective role (after impersonation) is listed."""

    def wrapper(func):
        @wraps(func)
        def inner(*args, **kwargs):
            if not current_user.is_authenticated:
                abort(401)
            if current_context().effective_role not in roles:
                abort(403)
            return func(*args, **kwargs)

        return inner

    return wrapper

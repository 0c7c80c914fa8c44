"""
Session context and effective-scope resolution.

Every read and write is parameterised by a ``SessionContext`` built from the
signed-in user plus any impersonation overlay. ``resolve_scope`` turns that
context into an ``EffectiveScope``; ``ScopeService.apply`` turns the scope into
a SQLAlchemy predicate. The predicate narrows what the dashboard shows; it is
not an authorization boundary, mutations re-check access explicitly.
"""
from dataclasses import dataclass, replace
from typing import Optional

from sqlalchemy import false

from yachtdesk.errors import ForbiddenError, NotFoundError, ValidationError
from yachtdesk.extensions import db
from yachtdesk.models import ROLES, Yacht

FLEET_WIDE_ROLES = frozenset({"master", "staff", "mechanic"})
YACHT_SCOPED_ROLES = frozenset({"owner", "manager"})
ADMIN_ROLE = "master"


@dataclass(frozen=True)
class SessionContext:
    user_id: int
    actual_role: str
    actual_yacht_id: Optional[int] = None
    impersonated_role: Optional[str] = None
    impersonated_yacht_id: Optional[int] = None

    @classmethod
    def for_user(cls, user, impersonated_role=None, impersonated_yacht_id=None):
        return cls(
            user_id=user.id,
            actual_role=user.role,
            actual_yacht_id=user.yacht_id,
            impersonated_role=impersonated_role if user.role == ADMIN_ROLE else None,
            impersonated_yacht_id=impersonated_yacht_id if user.role in FLEET_WIDE_ROLES else None,
        )

    @property
    def effective_role(self):
        return self.impersonated_role or self.actual_role

    @property
    def effective_yacht_id(self):
        return self.impersonated_yacht_id or self.actual_yacht_id

    @property
    def is_impersonating(self):
        return self.impersonated_role is not None or self.impersonated_yacht_id is not None


@dataclass(frozen=True)
class EffectiveScope:
    role: str
    user_id: int
    yacht_id: Optional[int]
    fleet_wide: bool
    owner_only: bool

    @property
    def is_empty(self):
        return not self.fleet_wide and self.yacht_id is None


def resolve_scope(ctx: SessionContext) -> EffectiveScope:
    role = ctx.effective_role
    yacht_id = ctx.effective_yacht_id
    if ctx.impersonated_yacht_id is not None:
        # A yacht overlay always narrows, whatever the role's normal reach.
        return EffectiveScope(
            role=role,
            user_id=ctx.user_id,
            yacht_id=ctx.impersonated_yacht_id,
            fleet_wide=False,
            owner_only=role == "owner",
        )
    if role in FLEET_WIDE_ROLES:
        return EffectiveScope(role=role, user_id=ctx.user_id, yacht_id=None, fleet_wide=True, owner_only=False)
    return EffectiveScope(
        role=role,
        user_id=ctx.user_id,
        yacht_id=yacht_id,
        fleet_wide=False,
        owner_only=role == "owner",
    )


class ScopeService:
    @staticmethod
    def apply(query, scope, yacht_column=None, user_column=None):
        """Narrow ``query`` to the rows ``scope`` may see.

        ``yacht_column`` is the model's yacht reference; ``user_column`` the
        submitter reference, only honoured for owner scopes. Models without a
        yacht column are filtered on ``user_column`` alone.
        """
        if scope.fleet_wide:
            return query
        if yacht_column is None and user_column is None:
            return query.filter(false())
        if yacht_column is not None:
            if scope.yacht_id is None:
                return query.filter(false())
            query = query.filter(yacht_column == scope.yacht_id)
        if user_column is not None and (scope.owner_only or yacht_column is None):
            query = query.filter(user_column == scope.user_id)
        return query

    @staticmethod
    def allows(scope, yacht_id, user_id=None, owner_checked=False):
        """Row-level counterpart of ``apply`` for a single loaded row."""
        if scope.fleet_wide:
            return True
        if scope.yacht_id is None or yacht_id != scope.yacht_id:
            return False
        if owner_checked and scope.owner_only:
            return user_id == scope.user_id
        return True

    @staticmethod
    def ensure_can_access(ctx, yacht_id, user_id=None, owner_checked=False):
        if not ScopeService.allows(resolve_scope(ctx), yacht_id, user_id, owner_checked):
            raise ForbiddenError("You do not have access to this record.")

    @staticmethod
    def parse_yacht_id(value):
        if value is None or value == "":
            return None
        if isinstance(value, bool):
            raise ValidationError("Invalid yacht id.")
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Invalid yacht id.") from exc

    @staticmethod
    def ensure_role(ctx, *roles):
        if ctx.effective_role not in roles:
            raise ForbiddenError("Your role is not permitted to perform this action.")

    @staticmethod
    def impersonate_role(ctx, role):
        if role is None or role == ctx.actual_role:
            return replace(ctx, impersonated_role=None)
        if ctx.actual_role != ADMIN_ROLE:
            raise ForbiddenError("Only master users can view the dashboard as another role.")
        if role not in ROLES:
            raise ValidationError("Unknown role.")
        return replace(ctx, impersonated_role=role)

    @staticmethod
    def impersonate_yacht(ctx, yacht_id):
        yacht_id = ScopeService.parse_yacht_id(yacht_id)
        if yacht_id is None:
            return replace(ctx, impersonated_yacht_id=None)
        if ctx.actual_role not in FLEET_WIDE_ROLES:
            raise ForbiddenError("Your role cannot switch yachts.")
        yacht = db.session.get(Yacht, yacht_id)
        if not yacht or not yacht.is_active:
            raise NotFoundError("Yacht not found.")
        return replace(ctx, impersonated_yacht_id=yacht.id)

    @staticmethod
    def describe(ctx):
        scope = resolve_scope(ctx)
        return {
            "user_id": ctx.user_id,
            "actual_role": ctx.actual_role,
            "actual_yacht_id": ctx.actual_yacht_id,
            "impersonated_role": ctx.impersonated_role,
            "impersonated_yacht_id": ctx.impersonated_yacht_id,
            "effective_role": scope.role,
            "effective_yacht_id": ctx.effective_yacht_id,
            "fleet_wide": scope.fleet_wide,
            "owner_only": scope.owner_only,
        }

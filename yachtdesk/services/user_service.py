import secrets

from sqlalchemy.exc import IntegrityError

from yachtdesk.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from yachtdesk.extensions import db
from yachtdesk.models import ROLES, User, Yacht
from yachtdesk.services.auth_service import AuthService
from yachtdesk.services.functions_client import CREATE_USER
from yachtdesk.services.outbox_service import OutboxService
from yachtdesk.services.scope_service import YACHT_SCOPED_ROLES, ScopeService

USER_ADMIN_ROLES = ("staff", "master")


class UserService:
    @staticmethod
    def get_user(user_id):
        user = db.session.get(User, user_id)
        if not user:
            raise NotFoundError("User not found.")
        return user

    @staticmethod
    def create_user(ctx, actor, data):
        """Create a local account; the invite email goes out through the outbox."""
        ScopeService.ensure_role(ctx, *USER_ADMIN_ROLES)
        role = (data.get("role") or "").strip().lower()
        if role not in ROLES:
            raise ValidationError("Invalid role.")
        if role == "master" and ctx.effective_role != "master":
            raise ForbiddenError("Only master users can create master accounts.")

        email = (data.get("email") or "").strip().lower()
        if not email or "@" not in email:
            raise ValidationError("A valid email is required.")
        if User.query.filter_by(email=email).first():
            raise ConflictError("Email already registered.")

        yacht_id = ScopeService.parse_yacht_id(data.get("yacht_id"))
        if role in YACHT_SCOPED_ROLES:
            yacht = db.session.get(Yacht, yacht_id) if yacht_id else None
            if not yacht or not yacht.is_active:
                raise ValidationError("Owners and managers must be assigned to an active yacht.")
            yacht_id = yacht.id

        password = data.get("password")
        temporary = not password
        if temporary:
            password = secrets.token_urlsafe(12)

        user = User(
            email=email,
            first_name=(data.get("first_name") or "").strip(),
            last_name=(data.get("last_name") or "").strip(),
            phone=(data.get("phone") or "").strip() or None,
            role=role,
            yacht_id=yacht_id,
            trip_number=(data.get("trip_number") or "").strip() or None,
            password_hash=AuthService.hash_password(password),
            must_change_password=temporary,
        )
        try:
            db.session.add(user)
            db.session.flush()
        except IntegrityError as exc:
            db.session.rollback()
            raise ConflictError("Email already registered.") from exc

        OutboxService.send_email(
            CREATE_USER,
            secret_fields=("temporaryPassword",),
            userId=user.id,
            email=email,
            firstName=user.first_name,
            lastName=user.last_name,
            role=role,
            yachtId=yacht_id,
            temporaryPassword=password if temporary else None,
        )
        if yacht_id is not None:
            OutboxService.log_history(
                yacht_id,
                "user_created",
                f"{user.full_name} added as {role}.",
                reference_type="user",
                reference_id=user.id,
                actor=actor,
            )
        OutboxService.commit_and_drain()
        return user

    @staticmethod
    def deactivate_user(ctx, actor, user):
        ScopeService.ensure_role(ctx, *USER_ADMIN_ROLES)
        if user.id == actor.id:
            raise ValidationError("You cannot deactivate your own account.")
        if user.role == "master" and ctx.effective_role != "master":
            raise ForbiddenError("Only master users can deactivate master accounts.")
        if not user.is_active_user:
            raise ConflictError("User is already inactive.")
        user.is_active_user = False
        OutboxService.notify(
            "user_deactivated",
            f"{user.full_name} was deactivated by {actor.full_name}.",
            yacht_id=user.yacht_id,
            user_id=actor.id,
            reference_id=user.id,
        )
        OutboxService.commit_and_drain()
        return user

    @staticmethod
    def restore_user(ctx, actor, user):
        ScopeService.ensure_role(ctx, *USER_ADMIN_ROLES)
        if user.is_active_user:
            raise ConflictError("User is already active.")
        user.is_active_user = True
        OutboxService.notify(
            "user_restored",
            f"{user.full_name} was restored by {actor.full_name}.",
            yacht_id=user.yacht_id,
            user_id=actor.id,
            reference_id=user.id,
        )
        OutboxService.commit_and_drain()
        return user

from datetime import datetime, timezone

from yachtdesk.errors import AppError, ValidationError
from yachtdesk.extensions import bcrypt, db
from yachtdesk.models import User

MIN_PASSWORD_LENGTH = 8


class AuthService:
    @staticmethod
    def hash_password(password):
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
        return bcrypt.generate_password_hash(password).decode("utf-8")

    @staticmethod
    def authenticate_user(email, password):
        user = User.query.filter_by(email=(email or "").strip().lower()).first()
        if not user:
            raise AppError("Invalid credentials.", 401)

        try:
            is_valid = bcrypt.check_password_hash(user.password_hash, password or "")
        except ValueError:
            is_valid = False

        if not is_valid:
            raise AppError("Invalid credentials.", 401)
        if not user.is_active_user:
            raise AppError("User account is inactive.", 403)
        user.last_sign_in_at = datetime.now(timezone.utc)
        db.session.commit()
        return user

    @staticmethod
    def record_sign_out(user):
        user.last_sign_out_at = datetime.now(timezone.utc)
        db.session.commit()

    @staticmethod
    def change_password(user, current_password, new_password):
        if not bcrypt.check_password_hash(user.password_hash, current_password or ""):
            raise AppError("Current password is incorrect.", 400)
        user.password_hash = AuthService.hash_password(new_password)
        user.must_change_password = False
        db.session.commit()
        return user

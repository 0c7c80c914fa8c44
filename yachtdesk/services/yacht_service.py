from yachtdesk.errors import NotFoundError, ValidationError
from yachtdesk.extensions import db
from yachtdesk.models import Yacht

EDITABLE_FIELDS = (
    "name",
    "model",
    "hull_number",
    "size",
    "port_engine",
    "starboard_engine",
    "port_generator",
    "starboard_generator",
    "marina_name",
    "slip_location",
)


class YachtService:
    @staticmethod
    def get_yacht(yacht_id):
        yacht = db.session.get(Yacht, yacht_id)
        if not yacht:
            raise NotFoundError("Yacht not found.")
        return yacht

    @staticmethod
    def _apply(yacht, data):
        for field in EDITABLE_FIELDS:
            if field in data:
                setattr(yacht, field, (data.get(field) or "").strip() or None)
        if "year" in data:
            try:
                yacht.year = int(data["year"]) if data["year"] not in (None, "") else None
            except (TypeError, ValueError) as exc:
                raise ValidationError("Year must be a number.") from exc
        if not yacht.name:
            raise ValidationError("Yacht name is required.")

    @staticmethod
    def create_yacht(data):
        yacht = Yacht(is_active=True)
        YachtService._apply(yacht, data)
        db.session.add(yacht)
        db.session.commit()
        return yacht

    @staticmethod
    def update_yacht(yacht, data):
        YachtService._apply(yacht, data)
        db.session.commit()
        return yacht

    @staticmethod
    def set_active(yacht, is_active):
        yacht.is_active = bool(is_active)
        db.session.commit()
        return yacht

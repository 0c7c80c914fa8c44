from yachtdesk.errors import NotFoundError, ValidationError
from yachtdesk.extensions import db
from yachtdesk.models import Yacht, YachtDocument
from yachtdesk.services.file_service import FileService
from yachtdesk.services.outbox_service import OutboxService
from yachtdesk.services.scope_service import ScopeService

DOCUMENT_ROLES = ("manager", "staff", "master")


class DocumentService:
    @staticmethod
    def get_document(document_id):
        row = db.session.get(YachtDocument, document_id)
        if not row:
            raise NotFoundError("Document not found.")
        return row

    @staticmethod
    def upload_document(ctx, actor, yacht_id, storage, document_name=None, notes=None):
        ScopeService.ensure_role(ctx, *DOCUMENT_ROLES)
        yacht = db.session.get(Yacht, yacht_id) if yacht_id else None
        if not yacht:
            raise NotFoundError("Yacht not found.")
        ScopeService.ensure_can_access(ctx, yacht.id)
        if not storage or not storage.filename:
            raise ValidationError("A file is required.")
        name = (document_name or "").strip()
        if len(name) > 255:
            raise ValidationError("Document name is too long.")

        with FileService.stored_upload(storage, f"yachts/{yacht.id}/documents") as stored:
            name = name or stored["file_name"][:255]
            row = YachtDocument(
                yacht_id=yacht.id,
                uploaded_by=actor.id,
                document_name=name,
                file_path=stored["file_path"],
                file_url=stored["file_url"],
                file_size=stored["file_size"],
                content_type=stored["content_type"],
                notes=(notes or "").strip() or None,
            )
            db.session.add(row)
            db.session.flush()
            OutboxService.log_history(
                yacht.id,
                "document_uploaded",
                f"Document uploaded: {name}",
                reference_type="document",
                reference_id=row.id,
                actor=actor,
            )
            OutboxService.commit_and_drain()
        return row

    @staticmethod
    def delete_document(ctx, actor, row):
        ScopeService.ensure_role(ctx, *DOCUMENT_ROLES)
        ScopeService.ensure_can_access(ctx, row.yacht_id)
        yacht_id, name, path = row.yacht_id, row.document_name, row.file_path
        db.session.delete(row)
        OutboxService.log_history(
            yacht_id,
            "document_deleted",
            f"Document deleted: {name}",
            reference_type="document",
            actor=actor,
        )
        OutboxService.commit_and_drain()
        FileService.remove(path)

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from yachtdesk.decorators import current_context
from yachtdesk.services import DocumentService

api_document_bp = Blueprint("api_document", __name__)


@api_document_bp.post("")
@login_required
def upload_document():
    row = DocumentService.upload_document(
        current_context(),
        current_user,
        request.form.get("yacht_id", type=int),
        request.files.get("file"),
        document_name=request.form.get("document_name"),
        notes=request.form.get("notes"),
    )
    return (
        jsonify(
            {
                "id": row.id,
                "yacht_id": row.yacht_id,
                "document_name": row.document_name,
                "file_url": row.file_url,
                "file_size": row.file_size,
            }
        ),
        201,
    )


@api_document_bp.delete("/<int:document_id>")
@login_required
def delete_document(document_id):
    row = DocumentService.get_document(document_id)
    DocumentService.delete_document(current_context(), current_user, row)
    return jsonify({"ok": True})

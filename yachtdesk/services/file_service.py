import os
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from uuid import uuid4

from flask import current_app
from PIL import Image
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from yachtdesk.errors import ValidationError

IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "webp", "gif"}
DOCUMENT_EXTENSIONS = {"pdf", "doc", "docx", "xls", "xlsx", "csv", "txt"} | IMAGE_EXTENSIONS


class FileService:
    @staticmethod
    def _extension(filename):
        return filename.rsplit(".", 1)[1].lower() if "." in filename else ""

    @staticmethod
    def _size(storage):
        stream = storage.stream
        stream.seek(0, os.SEEK_END)
        size = stream.tell()
        stream.seek(0)
        return size

    @classmethod
    def save_upload(cls, storage: FileStorage, folder: str, allowed=DOCUMENT_EXTENSIONS):
        """Store an upload under ``UPLOAD_DIR/<folder>/<date>/`` and describe it.

        Image uploads are opened with Pillow so a renamed file cannot pass as
        an image.
        """
        if not storage or not storage.filename:
            raise ValidationError("A file is required.")

        filename = secure_filename(storage.filename)
        extension = cls._extension(filename)
        if not filename or extension not in allowed:
            raise ValidationError("Unsupported file type.")

        size = cls._size(storage)
        max_bytes = current_app.config.get("MAX_CONTENT_LENGTH")
        if size == 0:
            raise ValidationError("The uploaded file is empty.")
        if max_bytes and size > max_bytes:
            raise ValidationError("The uploaded file is too large.")

        if extension in IMAGE_EXTENSIONS:
            try:
                img = Image.open(storage.stream)
                img.verify()
            except Exception as exc:
                raise ValidationError("Invalid image file.") from exc
            finally:
                storage.stream.seek(0)

        upload_root = Path(current_app.config["UPLOAD_DIR"])
        dated_folder = datetime.now(timezone.utc).strftime("%Y/%m/%d")
        relative_dir = Path(folder) / dated_folder
        (upload_root / relative_dir).mkdir(parents=True, exist_ok=True)

        relative_path = (relative_dir / f"{uuid4().hex}.{extension}").as_posix()
        storage.save(upload_root / relative_path)

        media_base = current_app.config.get("MEDIA_BASE_URL", "/media").rstrip("/")
        return {
            "file_path": relative_path,
            "file_url": f"{media_base}/{relative_path}",
            "file_name": filename,
            "file_size": size,
            "content_type": storage.mimetype or None,
        }

    @classmethod
    @contextmanager
    def stored_upload(cls, storage, folder, allowed=DOCUMENT_EXTENSIONS):
        """Save ``storage`` for the duration of a write; the file is removed if the block raises."""
        if not storage or not storage.filename:
            yield None
            return
        stored = cls.save_upload(storage, folder, allowed)
        try:
            yield stored
        except Exception:
            cls.remove(stored["file_path"])
            raise

    @staticmethod
    def remove(relative_path):
        if not relative_path:
            return False
        upload_root = Path(current_app.config["UPLOAD_DIR"]).resolve()
        target = (upload_root / relative_path).resolve()
        if upload_root not in target.parents:
            raise ValidationError("Invalid file path.")
        try:
            target.unlink()
        except FileNotFoundError:
            current_app.logger.info("Stored file %s already removed", relative_path)
            return False
        return True

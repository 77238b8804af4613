"""
Upload Service — disk-backed file store for project attachments and
progress photos.

Contract:
    save_upload(file) → opaque reference (the stored filename)
    stored files are served from GET /api/uploads/<reference>

Only images and PDFs are accepted (by extension), at most MAX_UPLOAD_BYTES
(5 MB by default) each. Stored names are ``<epoch-ms>-<random><ext>`` so
user-supplied names never reach the filesystem.
"""

import logging
import os
import secrets
import time

from flask import current_app
from werkzeug.utils import secure_filename

from pmis.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".pdf"})
DEFAULT_MAX_BYTES = 5 * 1024 * 1024


class UploadTooLargeError(ValidationError):
    """A single file exceeds the per-file size limit (HTTP 413)."""


def upload_folder() -> str:
    folder = current_app.config["UPLOAD_FOLDER"]
    os.makedirs(folder, exist_ok=True)
    return folder


def _extension(filename: str) -> str:
    # Raw client name: secure_filename drops non-ASCII stems along with the dot
    return os.path.splitext(filename or "")[1].lower()


def _size_of(file) -> int:
    stream = file.stream
    pos = stream.tell()
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(pos)
    return size


def save_upload(file, field_name: str = "file") -> str:
    """Validate and persist one uploaded file; return its reference."""
    ext = _extension(file.filename)
    if ext not in ALLOWED_EXTENSIONS:
        raise ValidationError(
            "Only image and PDF files are allowed!",
            details={field_name: f"allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}"},
        )

    max_bytes = current_app.config.get("MAX_UPLOAD_BYTES", DEFAULT_MAX_BYTES)
    size = _size_of(file)
    if size > max_bytes:
        raise UploadTooLargeError(
            f"{field_name} exceeds the {max_bytes // (1024 * 1024)} MB limit",
            details={field_name: f"{size} bytes"},
        )

    reference = f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{ext}"
    file.save(os.path.join(upload_folder(), reference))
    logger.info(
        "Stored upload %s (%d bytes) for %s from %r", reference, size, field_name, secure_filename(file.filename),
    )
    return reference


def save_uploads(files, field_names) -> dict:
    """Persist every present file among ``field_names``; returns {field: reference}.

    ``files`` is a werkzeug MultiDict (``request.files``); missing or empty
    file parts are skipped.
    """
    stored = {}
    for name in field_names:
        file = files.get(name) if files else None
        if file is None or not file.filename:
            continue
        stored[name] = save_upload(file, field_name=name)
    return stored

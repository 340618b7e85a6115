# Overview: Service-layer operations for image uploads stored on local disk.

"""
Product image uploads.

Files are saved under UPLOAD_FOLDER as agri-<millis>-<random>-<clean name>
and referenced from products by their relative URL (/uploads/<filename>).
"""

from __future__ import annotations

import os
import re
import secrets
import time

from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from ..errors import ValidationError

ALLOWED_MIMETYPES = {"image/png", "image/jpg", "image/jpeg", "image/webp"}
ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp"}


def upload_folder() -> str:
    folder = current_app.config.get("UPLOAD_FOLDER") or os.path.join(current_app.instance_path, "uploads")
    os.makedirs(folder, exist_ok=True)
    return folder


def _file_size(storage: FileStorage) -> int:
    stream = storage.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def _issue(index: int, message: str) -> dict:
    return {"field": f"images[{index}]", "message": message}


def check_files(files: list[FileStorage]) -> None:
    max_files = current_app.config["UPLOAD_MAX_FILES"]
    max_bytes = current_app.config["UPLOAD_MAX_FILE_BYTES"]

    files = [f for f in files if f and f.filename]
    if not files:
        raise ValidationError("No image found in the request", [{"field": "images", "message": "At least one file is required"}])
    if len(files) > max_files:
        raise ValidationError(
            f"Too many files (max {max_files})",
            [{"field": "images", "message": f"At most {max_files} files per upload"}],
        )

    issues = []
    for i, f in enumerate(files):
        ext = os.path.splitext(f.filename)[1].lower()
        if f.mimetype not in ALLOWED_MIMETYPES or ext not in ALLOWED_EXTENSIONS:
            issues.append(_issue(i, "Unsupported format. Use PNG, JPG or WebP."))
        elif _file_size(f) > max_bytes:
            issues.append(_issue(i, f"File exceeds {max_bytes // (1024 * 1024)} MB"))
    if issues:
        raise ValidationError("Validation failed", issues)


def stored_name(original: str) -> str:
    clean = secure_filename(original).lower()
    clean = re.sub(r"[^a-z0-9.]", "_", clean) or "image"
    return f"agri-{int(time.time() * 1000)}-{secrets.randbelow(10**9)}-{clean}"


def save_images(files: list[FileStorage]) -> list[str]:
    """Validate then store; returns relative URLs in upload order."""
    check_files(files)
    folder = upload_folder()
    urls = []
    for f in files:
        if not f or not f.filename:
            continue
        name = stored_name(f.filename)
        f.save(os.path.join(folder, name))
        urls.append(f"/uploads/{name}")
    current_app.logger.info("Stored %s uploaded image(s)", len(urls))
    return urls

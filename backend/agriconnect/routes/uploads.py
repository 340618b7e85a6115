# Overview: Flask routes for product image upload and static serving of stored images.

from flask import Blueprint, request, send_from_directory

from ..errors import MarketplaceError, error_response
from ..services import upload_service
from ..decorators import require_auth

uploads_bp = Blueprint("uploads", __name__)


@uploads_bp.post("/api/uploads")
@require_auth
def upload_images():
    """
    Multipart upload, field "images": 1-5 PNG/JPG/WebP files, 2 MB each.

    Returns {"success": true, "urls": ["/uploads/<name>", ...]} to be stored
    in a product's images list.
    """
    try:
        urls = upload_service.save_images(request.files.getlist("images"))
    except MarketplaceError as e:
        return error_response(e)
    return {"success": True, "urls": urls}, 200


@uploads_bp.get("/uploads/<path:filename>")
def serve_upload(filename: str):
    return send_from_directory(upload_service.upload_folder(), filename)

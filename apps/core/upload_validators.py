"""
Evidence / document upload validation.

Checks, in order:
  1. Maximum file size
  2. Extension whitelist
  3. MIME type whitelist
  4. Magic-bytes consistency with the declared type

Usage in serializers:
    from apps.core.upload_validators import validate_upload

    class EvidenceSerializer(serializers.ModelSerializer):
        file = serializers.FileField(validators=[validate_upload])
"""

import logging
import mimetypes
import os

from django.conf import settings
from django.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = {
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".csv", ".txt",
    ".ppt", ".pptx", ".jpg", ".jpeg", ".png",
}

DEFAULT_MIME_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "text/csv",
    "text/plain",
    "image/jpeg",
    "image/png",
}

# Magic bytes → expected MIME prefix mapping
_MAGIC_BYTES = {
    b"\x89PNG":       "image/png",
    b"\xff\xd8\xff":  "image/jpeg",
    b"%PDF":          "application/pdf",
    b"PK":            "application/",       # docx, xlsx, pptx
    b"\xd0\xcf\x11":  "application/",       # MS Office legacy
}


def _limits():
    max_mb = getattr(settings, "MAX_UPLOAD_SIZE_MB", 10)
    extensions = getattr(settings, "ALLOWED_UPLOAD_EXTENSIONS", DEFAULT_EXTENSIONS)
    mime_types = getattr(settings, "ALLOWED_UPLOAD_MIME_TYPES", DEFAULT_MIME_TYPES)
    return max_mb, set(extensions), set(mime_types)


def _check_magic_bytes(file_obj, content_type):
    """
    True when the file header is consistent with ``content_type``.
    Unrecognised headers (plain text, CSV) pass.
    """
    file_obj.seek(0)
    header = file_obj.read(8)
    file_obj.seek(0)

    if not header:
        return False

    for magic, expected_prefix in _MAGIC_BYTES.items():
        if header.startswith(magic):
            return (content_type or "").startswith(expected_prefix)
    return True


def validate_upload(file_obj):
    """
    Raises ``ValidationError`` on an oversized file, a disallowed extension
    or MIME type, or a magic-byte / content-type mismatch.
    """
    max_mb, allowed_extensions, allowed_mime_types = _limits()

    size = getattr(file_obj, "size", None)
    if size is not None and size > max_mb * 1024 * 1024:
        raise ValidationError(
            f"File too large. Maximum allowed size is {max_mb} MB."
        )

    name = getattr(file_obj, "name", "") or ""
    ext = os.path.splitext(name)[1].lower()
    if ext not in allowed_extensions:
        raise ValidationError(
            f"File extension '{ext}' is not allowed. "
            f"Allowed: {', '.join(sorted(allowed_extensions))}"
        )

    content_type = getattr(file_obj, "content_type", None)
    if not content_type:
        content_type, _ = mimetypes.guess_type(name)

    if content_type and content_type not in allowed_mime_types:
        raise ValidationError(
            f"File type '{content_type}' is not allowed."
        )

    if hasattr(file_obj, "read") and not _check_magic_bytes(file_obj, content_type):
        logger.warning(
            "upload_magic_byte_mismatch file=%s content_type=%s",
            name,
            content_type,
        )
        raise ValidationError(
            "File content does not match its declared type."
        )

    return file_obj

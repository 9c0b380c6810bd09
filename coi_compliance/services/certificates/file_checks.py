"""Upload file validation shared by internal and portal uploads."""

import hashlib

from coi_compliance.core.exceptions import ValidationError

PDF_MAGIC = b"%PDF"


def sha256_hex(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


def validate_pdf(filename: str, content: bytes, max_bytes: int) -> None:
    """Check extension, size and magic bytes, in that order.

    Raises:
        ValidationError: With a message the uploader can act on
    """
    if not filename or not filename.lower().endswith(".pdf"):
        raise ValidationError("Only PDF files are accepted")
    if not content:
        raise ValidationError("The uploaded file is empty")
    if len(content) > max_bytes:
        limit_mb = max_bytes // (1024 * 1024)
        raise ValidationError(f"File is too large. The maximum size is {limit_mb} MB")
    if not content.startswith(PDF_MAGIC):
        raise ValidationError("The file does not appear to be a valid PDF")

from __future__ import annotations

from werkzeug.utils import secure_filename

from app.idcards.errors import ValidationError
from app.idcards.modules.id_requests.models import HOLDER_FIELDS


def normalize_register_number(register_number: str | None) -> str:
    return (register_number or "").strip()


def normalize_login_number(register_number: str | None) -> str:
    """Login form input is case-insensitive; the allowlist is stored upper-case."""
    return normalize_register_number(register_number).upper()


def require_register_number(register_number: str | None) -> str:
    rn = normalize_register_number(register_number)
    if not rn:
        raise ValidationError("registerNumber is required.", field="register_number")
    return rn


def clean_text(value) -> str | None:
    if value is None:
        return None
    v = str(value).strip()
    return v or None


def holder_payload(payload: dict) -> dict:
    """Pick the holder columns out of a submission, stripped, blanks as None."""
    return {f: clean_text(payload.get(f)) for f in HOLDER_FIELDS}


def sanitize_upload_filename(filename: str | None) -> str:
    fn = secure_filename(filename or "")
    return fn or "photo.bin"

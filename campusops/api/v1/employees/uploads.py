import os
import shutil
import tempfile

from fastapi import UploadFile
from loguru import logger

from campusops.core.config import settings
from campusops.core.exceptions import MalformedInputError

ALLOWED_EXTENSIONS = (".xlsx", ".xlsm")


def save_upload(file: UploadFile) -> str:
    """Copy an uploaded workbook to a temp file under settings.upload_dir and return its path."""
    if not file or not file.filename:
        raise MalformedInputError("No file uploaded")
    suffix = os.path.splitext(file.filename)[1].lower()
    if suffix not in ALLOWED_EXTENSIONS:
        raise MalformedInputError("File must be an Excel file (.xlsx)")

    os.makedirs(settings.upload_dir, exist_ok=True)
    with tempfile.NamedTemporaryFile(dir=settings.upload_dir, suffix=suffix, delete=False) as tmp:
        shutil.copyfileobj(file.file, tmp)
    return tmp.name


def delete_file(path: str) -> None:
    """Best-effort removal of a temp upload; failures are only logged."""
    try:
        os.remove(path)
    except OSError as e:
        logger.error(f"Error deleting temp file {path}: {e}")

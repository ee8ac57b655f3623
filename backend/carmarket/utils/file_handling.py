import os

from fastapi import UploadFile

from carmarket.config import settings
from carmarket.utils.exceptions import ListingValidationError

ALLOWED_EXTENSIONS = {
    ext.strip().lower() for ext in settings.allowed_image_extensions.split(",")
}


def file_extension(filename: str | None) -> str:
    """Extension without the dot, lower-cased; ``"bin"`` when there is none."""
    ext = os.path.splitext(filename or "")[1].lower().lstrip(".")
    return ext or "bin"


def validate_image(filename: str | None, size: int) -> None:
    ext = os.path.splitext(filename or "")[1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise ListingValidationError(
            f"File type '{ext}' not allowed. Allowed: {sorted(ALLOWED_EXTENSIONS)}",
            field="images",
        )
    max_bytes = settings.max_image_size_mb * 1024 * 1024
    if size > max_bytes:
        raise ListingValidationError(
            f"'{filename}' is larger than {settings.max_image_size_mb} MB",
            field="images",
        )


async def read_upload(file: UploadFile) -> bytes:
    content = await file.read()
    await file.seek(0)
    return content

import base64
import io
import os
import uuid

import aiofiles
import aiofiles.os
from fastapi import UploadFile
from PIL import Image

from parcelcheck.config import Settings


async def save_upload(file: UploadFile, settings: Settings) -> tuple[str, str]:
    """Save an uploaded photo to disk.

    Returns (stored_filename, full_file_path).
    """
    ext = os.path.splitext(file.filename or "photo")[1]
    stored_filename = f"{uuid.uuid4()}{ext}"
    file_path = os.path.join(settings.upload_dir, stored_filename)

    os.makedirs(settings.upload_dir, exist_ok=True)

    async with aiofiles.open(file_path, "wb") as f:
        content = await file.read()
        await f.write(content)

    return stored_filename, file_path


async def remove_upload(file_path: str | None) -> None:
    """Delete a stored photo; a file that is already gone is fine."""
    if file_path and await aiofiles.os.path.exists(file_path):
        await aiofiles.os.remove(file_path)


def get_file_extension(filename: str) -> str:
    """Extract the file extension without the dot, lowercased."""
    _, ext = os.path.splitext(filename)
    return ext.lstrip(".").lower()


def encode_photo(data: bytes, max_dimension: int = 2048) -> tuple[str, str]:
    """Downsize a photo and re-encode it as PNG for the vision API.

    Returns (base64_data, media_type).
    """
    img = Image.open(io.BytesIO(data))
    if max(img.size) > max_dimension:
        ratio = max_dimension / max(img.size)
        new_size = (int(img.size[0] * ratio), int(img.size[1] * ratio))
        img = img.resize(new_size, Image.LANCZOS)

    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode("utf-8"), "image/png"

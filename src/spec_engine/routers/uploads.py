"""Helpers shared by the YAML import endpoints."""
from __future__ import annotations

from fastapi import UploadFile

from src.shared.errors import ParsingError

# 5 MB limit
MAX_UPLOAD_BYTES = 5 * 1024 * 1024


async def read_upload(file: UploadFile) -> str:
    raw = await file.read()
    if len(raw) > MAX_UPLOAD_BYTES:
        raise ParsingError("Uploaded file is too large")
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ParsingError("Uploaded file must be UTF-8 encoded YAML") from exc

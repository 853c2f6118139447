import re
import unicodedata
from urllib.parse import quote


def slugify(value: str | None) -> str:
    value = (value or "").strip().lower()
    if not value:
        return ""
    normalized = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    normalized = re.sub(r"[^a-z0-9]+", "-", normalized)
    normalized = normalized.strip("-")
    normalized = re.sub(r"-{2,}", "-", normalized)
    return normalized


def format_bytes(size: int | None) -> str:
    if not size:
        return "-"
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


def content_disposition(filename: str, disposition: str = "attachment") -> str:
    """Header value safe for latin-1 transport, with the UTF-8 name in ``filename*``."""
    fallback = unicodedata.normalize("NFKD", filename).encode("ascii", "ignore").decode("ascii")
    fallback = re.sub(r"[\"\\\r\n]", "", fallback).strip()
    stem, dot, suffix = fallback.rpartition(".")
    if not fallback or (dot and not stem):
        fallback = f"download.{suffix}" if dot and suffix else "download"
    return f"{disposition}; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from uuid import UUID, uuid4

from fastapi import UploadFile

from app.core.exceptions import UploadRejected
from app.core.settings import settings


DOCUMENT_EXTENSIONS = {".pdf", ".doc", ".docx", ".jpg", ".jpeg", ".png"}
CLAIM_DOCUMENT_EXTENSIONS = {".pdf", ".jpg", ".jpeg", ".png"}
SPREADSHEET_EXTENSIONS = {".xlsx", ".xls"}

CLAIM_DOCUMENT_MAX_BYTES = 5 * 1024 * 1024

_CHUNK_SIZE = 1024 * 1024

# Magic byte signatures for known binary file types.
# Used to cross-check that uploaded file content matches the claimed extension.
_MAGIC_SIGNATURES: dict[str, list[bytes]] = {
    ".pdf": [b"%PDF"],
    ".png": [b"\x89PNG\r\n\x1a\n"],
    ".jpg": [b"\xff\xd8\xff"],
    ".jpeg": [b"\xff\xd8\xff"],
    ".doc": [b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"],
    ".docx": [b"PK\x03\x04", b"PK\x05\x06"],
    ".xls": [b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"],
    ".xlsx": [b"PK\x03\x04", b"PK\x05\x06"],
}

_CONTENT_TYPES = {
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


@dataclass(frozen=True)
class StoredFile:
    storage_key: str
    original_name: str
    size_bytes: int
    content_type: str | None

    @property
    def url(self) -> str:
        return document_url(self.storage_key)


def _validate_content_type(header_bytes: bytes, ext: str) -> None:
    """Raise ``UploadRejected`` if the leading bytes do not match ``ext``."""
    signatures = _MAGIC_SIGNATURES.get(ext)
    if signatures is None:
        return
    if not any(header_bytes.startswith(sig) for sig in signatures):
        raise UploadRejected(
            f"File content does not match the expected format for '{ext}'",
            {"extension": ext},
        )


def _safe_filename(filename: str | None, fallback: str) -> str:
    if not filename:
        return fallback
    return Path(filename).name or fallback


def _normalize_extensions(allowed_extensions: set[str]) -> set[str]:
    normalized = {e.lower() if e.startswith(".") else f".{e.lower()}" for e in allowed_extensions}
    if ".jpeg" in normalized:
        normalized.add(".jpg")
    if ".jpg" in normalized:
        normalized.add(".jpeg")
    return normalized


def check_extension(filename: str | None, allowed_extensions: set[str]) -> str:
    ext = Path(_safe_filename(filename, "upload.bin")).suffix.lower()
    allowed = _normalize_extensions(allowed_extensions)
    if ext not in allowed:
        raise UploadRejected(
            f"File type not allowed. Allowed extensions: {', '.join(sorted(allowed))}",
            {"extension": ext, "allowed": sorted(allowed)},
        )
    return ext


def _too_large(max_size_bytes: int) -> UploadRejected:
    return UploadRejected(
        f"File exceeds maximum allowed size of {max_size_bytes / (1024 * 1024):g} MB",
        {"max_size_bytes": max_size_bytes},
    )


async def read_upload(
    file: UploadFile,
    *,
    allowed_extensions: set[str],
    max_size_bytes: int,
) -> tuple[bytes, str]:
    """Read an upload fully into memory after extension, size and magic checks."""
    ext = check_extension(file.filename, allowed_extensions)
    chunks: list[bytes] = []
    total = 0
    try:
        while True:
            chunk = await file.read(_CHUNK_SIZE)
            if not chunk:
                break
            total += len(chunk)
            if max_size_bytes and total > max_size_bytes:
                raise _too_large(max_size_bytes)
            chunks.append(chunk)
    finally:
        await file.close()
    content = b"".join(chunks)
    _validate_content_type(content[:16], ext)
    return content, _safe_filename(file.filename, "upload.bin")


async def save_upload(
    file: UploadFile,
    base_dir: Path,
    subdir: Path,
    allowed_extensions: set[str],
    max_size_bytes: int = 0,
) -> StoredFile:
    base_dir = base_dir.resolve()
    dest_dir = (base_dir / subdir).resolve()
    if base_dir not in dest_dir.parents and base_dir != dest_dir:
        raise UploadRejected("Invalid upload path")

    original_name = _safe_filename(file.filename, "upload.bin")
    ext = check_extension(original_name, allowed_extensions)

    dest_dir.mkdir(parents=True, exist_ok=True)
    dest_path = dest_dir / f"{uuid4().hex}{ext}"
    bytes_written = 0

    try:
        with dest_path.open("wb") as handle:
            first_chunk = await file.read(_CHUNK_SIZE)
            if first_chunk:
                _validate_content_type(first_chunk, ext)
            chunk = first_chunk
            while chunk:
                bytes_written += len(chunk)
                if max_size_bytes and bytes_written > max_size_bytes:
                    raise _too_large(max_size_bytes)
                handle.write(chunk)
                chunk = await file.read(_CHUNK_SIZE)
    except UploadRejected:
        # Clean up partial file on validation/size failure
        dest_path.unlink(missing_ok=True)
        raise
    finally:
        await file.close()

    return StoredFile(
        storage_key=dest_path.relative_to(base_dir).as_posix(),
        original_name=original_name,
        size_bytes=bytes_written,
        content_type=_CONTENT_TYPES.get(ext) or file.content_type,
    )


def resolve_local_path(base_dir: Path, relative_path: str) -> Path:
    base_dir = base_dir.resolve()
    candidate = (base_dir / relative_path).resolve()
    if base_dir not in candidate.parents and candidate != base_dir:
        raise ValueError("Invalid document path")
    return candidate


def delete_stored_file(base_dir: Path, relative_path: str | None) -> None:
    if not relative_path:
        return
    resolve_local_path(base_dir, relative_path).unlink(missing_ok=True)


def upload_root() -> Path:
    return Path(settings.local_upload_dir)


def document_url(storage_key: str) -> str:
    return f"{settings.document_base_url.rstrip('/')}/{storage_key}"


def loan_documents_subdir(loan_id: UUID) -> Path:
    return Path("loans") / str(loan_id) / "documents"


def claim_documents_subdir(claim_id: UUID) -> Path:
    return Path("claims") / str(claim_id) / "documents"


def library_subdir() -> Path:
    return Path("library")

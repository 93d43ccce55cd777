"""MIME type detection and allow-list validation for ingested content.

Detection runs in three stages and returns the first confident answer:

1. **Magic numbers** on a byte sample (PDF, PNG, JPEG, GIF, WEBP, ZIP, BMP,
   TIFF, ICO), then markup sniffing of the first 100 bytes (SVG, HTML,
   XML) and a JSON probe that must parse the first 1024 bytes.
2. **Extension table** keyed by the lowercased file suffix.
3. **Text heuristic** over the first 2 KB: fewer than 5% non-text bytes
   means ``text/plain``.

Anything else is ``application/octet-stream``.

Both extension maps are generated from :data:`_FORMATS`, one row per MIME
type, so ``detect_by_extension(extension_for(m)) == m`` holds for every
type in the table.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import PurePath

import structlog

from docvault.utils.errors import UnsupportedContentTypeError, guidance_for_content_type

logger = structlog.get_logger(logger_name=__name__)

OCTET_STREAM = "application/octet-stream"

_MARKUP_PROBE = 100
_XML_PROBE = 50
_JSON_PROBE = 1024
_TEXT_PROBE = 2048
_NON_TEXT_RATIO = 0.05

# (mime, canonical extension, extra extensions)
_FORMATS: tuple[tuple[str, str, tuple[str, ...]], ...] = (
    # Text
    ("text/plain", ".txt", (".text",)),
    ("text/markdown", ".md", (".markdown", ".mdown")),
    ("text/html", ".html", (".htm",)),
    ("text/css", ".css", ()),
    ("text/csv", ".csv", ()),
    ("application/javascript", ".js", (".mjs",)),
    ("application/json", ".json", ()),
    ("application/xml", ".xml", ()),
    # Documents
    ("application/rtf", ".rtf", ()),
    ("application/pdf", ".pdf", ()),
    ("application/msword", ".doc", ()),
    ("application/vnd.openxmlformats-officedocument.wordprocessingml.document", ".docx", ()),
    ("application/vnd.ms-excel", ".xls", ()),
    ("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", ".xlsx", ()),
    ("application/vnd.ms-powerpoint", ".ppt", ()),
    ("application/vnd.openxmlformats-officedocument.presentationml.presentation", ".pptx", ()),
    ("application/vnd.oasis.opendocument.text", ".odt", ()),
    ("application/vnd.oasis.opendocument.spreadsheet", ".ods", ()),
    ("application/vnd.oasis.opendocument.presentation", ".odp", ()),
    # Images
    ("image/jpeg", ".jpg", (".jpeg",)),
    ("image/png", ".png", ()),
    ("image/gif", ".gif", ()),
    ("image/webp", ".webp", ()),
    ("image/bmp", ".bmp", ()),
    ("image/tiff", ".tiff", (".tif",)),
    ("image/x-icon", ".ico", ()),
    ("image/svg+xml", ".svg", ()),
    ("image/avif", ".avif", ()),
    ("image/heic", ".heic", (".heif",)),
    # Archives
    ("application/zip", ".zip", ()),
    ("application/vnd.rar", ".rar", ()),
    ("application/x-7z-compressed", ".7z", ()),
    ("application/x-tar", ".tar", ()),
    ("application/gzip", ".gz", ()),
    # Audio / video (detected so they can be rejected with guidance)
    ("audio/mpeg", ".mp3", ()),
    ("audio/wav", ".wav", ()),
    ("audio/ogg", ".ogg", ()),
    ("audio/flac", ".flac", ()),
    ("video/mp4", ".mp4", ()),
    ("video/x-msvideo", ".avi", ()),
    ("video/quicktime", ".mov", ()),
    ("video/webm", ".webm", ()),
)

_EXTENSION_TO_MIME: dict[str, str] = {
    ext: mime for mime, canonical, aliases in _FORMATS for ext in (canonical, *aliases)
}
_MIME_TO_EXTENSION: dict[str, str] = {mime: canonical for mime, canonical, _ in _FORMATS}

SUPPORTED_CONTENT_TYPES: frozenset[str] = frozenset(
    {
        "text/plain",
        "text/markdown",
        "text/html",
        "text/css",
        "text/csv",
        "application/json",
        "application/xml",
        "application/javascript",
        "application/rtf",
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/vnd.ms-powerpoint",
        "application/vnd.openxmlformats-officedocument.presentationml.presentation",
        "application/vnd.oasis.opendocument.text",
        "application/vnd.oasis.opendocument.spreadsheet",
        "application/vnd.oasis.opendocument.presentation",
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/webp",
        "image/bmp",
        "image/tiff",
        "image/x-icon",
        "image/svg+xml",
        "image/avif",
        "image/heic",
        OCTET_STREAM,
        "application/zip",
    }
)

_PNG_MAGIC = b"\x89PNG\r\n\x1a\n"
_ZIP_MAGICS = (b"PK\x03\x04", b"PK\x05\x06", b"PK\x07\x08")
_TIFF_MAGICS = (b"II*\x00", b"MM\x00*")
_ICO_MAGIC = b"\x00\x00\x01\x00"


@dataclass(frozen=True)
class ContentTypeValidation:
    """Result of checking a MIME type against the allow-list."""

    is_supported: bool
    content_type: str
    error: str | None = None
    suggestions: tuple[str, ...] = ()

    def raise_for_unsupported(self, context: str | None = None) -> None:
        if not self.is_supported:
            raise UnsupportedContentTypeError(self.content_type, self.error or "", context=context)


class ContentTypeDetector:
    """Stateless MIME sniffer; safe to share between managers."""

    def detect(self, path: str | PurePath | None = None, sample: bytes | bytearray | None = None) -> str:
        """Return the MIME type for *sample*, falling back to *path*'s extension.

        Parameters
        ----------
        path:
            File path or display name; only its suffix is used.
        sample:
            Leading bytes of the content.  May be the whole content.

        Returns
        -------
        str
            Detected MIME type, ``application/octet-stream`` when unknown.
        """
        if sample:
            by_magic = self.detect_by_magic(sample)
            if by_magic != OCTET_STREAM:
                return by_magic

        if path is not None:
            by_extension = self.detect_by_extension(PurePath(path).suffix)
            if by_extension != OCTET_STREAM:
                return by_extension

        if sample is not None and self.is_text(sample):
            return "text/plain"

        return OCTET_STREAM

    def detect_by_magic(self, sample: bytes | bytearray) -> str:
        """Identify *sample* by its leading signature bytes."""
        head = bytes(sample[:_JSON_PROBE])
        if not head:
            return OCTET_STREAM

        if head.startswith(b"%PDF"):
            return "application/pdf"
        if head.startswith(_PNG_MAGIC):
            return "image/png"
        if head.startswith(b"\xff\xd8\xff"):
            return "image/jpeg"
        if head[:6] in (b"GIF87a", b"GIF89a"):
            return "image/gif"
        if len(head) >= 12 and head[:4] == b"RIFF" and head[8:12] == b"WEBP":
            return "image/webp"
        if head[:4] in _ZIP_MAGICS:
            return "application/zip"
        # BMP reserved header fields (bytes 6..10) are always zero.
        if len(head) >= 14 and head[:2] == b"BM" and head[6:10] == b"\x00\x00\x00\x00":
            return "image/bmp"
        if head[:4] in _TIFF_MAGICS:
            return "image/tiff"
        if head[:4] == _ICO_MAGIC:
            return "image/x-icon"

        if len(head) >= 5:
            markup = head[:_MARKUP_PROBE].decode("utf-8", errors="ignore").lower()
            if "<svg" in markup:
                return "image/svg+xml"
            if "<!doctype html" in markup or "<html" in markup or "<head" in markup:
                return "text/html"
            if markup[:_XML_PROBE].startswith("<?xml"):
                return "application/xml"

        if len(head) >= 2:
            lead = head[:10].decode("utf-8", errors="ignore").strip()
            if lead.startswith(("{", "[")) and _parses_as_json(head):
                return "application/json"

        return OCTET_STREAM

    def detect_by_extension(self, extension: str) -> str:
        """Look up *extension* (with or without the dot, any case)."""
        ext = extension.lower()
        if ext and not ext.startswith("."):
            ext = f".{ext}"
        return _EXTENSION_TO_MIME.get(ext, OCTET_STREAM)

    def extension_for(self, content_type: str) -> str | None:
        """Return the canonical extension for *content_type*, or ``None``."""
        return _MIME_TO_EXTENSION.get(content_type)

    def is_text(self, sample: bytes | bytearray) -> bool:
        """Heuristically decide whether *sample* is human-readable text."""
        if not sample:
            return True
        probe = bytes(sample[:_TEXT_PROBE])

        start = 0
        if probe.startswith(b"\xef\xbb\xbf"):
            start = 3
        elif probe.startswith((b"\xff\xfe", b"\xfe\xff")):
            start = 2

        body = probe[start:]
        if not body:
            return True

        non_text = 0
        for idx, byte in enumerate(body):
            if byte in (9, 10, 13) or 32 <= byte <= 126:
                continue
            if byte >= 128 and _is_utf8_byte(body, idx):
                continue
            non_text += 1
        return non_text / len(body) < _NON_TEXT_RATIO

    def validate(self, content_type: str) -> ContentTypeValidation:
        """Check *content_type* against :data:`SUPPORTED_CONTENT_TYPES`."""
        if content_type in SUPPORTED_CONTENT_TYPES:
            return ContentTypeValidation(is_supported=True, content_type=content_type)

        suggestions = guidance_for_content_type(content_type)
        logger.debug("content_type_rejected", content_type=content_type)
        return ContentTypeValidation(
            is_supported=False,
            content_type=content_type,
            error=f"Unsupported content type: {content_type}. {suggestions[0]}.",
            suggestions=suggestions,
        )


def _parses_as_json(head: bytes) -> bool:
    try:
        json.loads(head[:_JSON_PROBE].decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return False
    return True


def _is_utf8_byte(buf: bytes, idx: int) -> bool:
    """True if ``buf[idx]`` is a continuation byte or starts a well-formed sequence."""
    byte = buf[idx]
    if byte & 0xC0 == 0x80:
        return True
    if byte & 0xE0 == 0xC0:
        needed = 1
    elif byte & 0xF0 == 0xE0:
        needed = 2
    elif byte & 0xF8 == 0xF0:
        needed = 3
    else:
        return False
    if idx + needed >= len(buf):
        return False
    return all(buf[idx + k] & 0xC0 == 0x80 for k in range(1, needed + 1))

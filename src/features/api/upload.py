"""Text extraction for uploaded source documents."""

import re
from dataclasses import dataclass
from pathlib import PurePath

import fitz
import structlog

from src.features.api.errors import UnsupportedFileTypeError


logger = structlog.get_logger()

MAX_UPLOAD_BYTES = 10 * 1024 * 1024

TEXT_CHAR_LIMIT = 50_000
PDF_CHAR_LIMIT = 30_000
PARAGRAPH_LIMIT = 100

TEXT_EXTENSIONS = frozenset({".txt", ".md", ".csv", ".json", ".xml", ".html", ".htm"})
PDF_EXTENSIONS = frozenset({".pdf"})

_PARAGRAPH_SPLIT_RE = re.compile(r"\n\s*\n")
_SHORT_LINE_LIMIT = 40
_SHORT_LINE_RATIO = 0.2


@dataclass(frozen=True)
class LimitedContent:
    """Content after size limiting.

    Attributes:
        content: Possibly truncated text.
        limited: Whether any limit was applied.
        original_size: Character count before limiting.
        limit_reason: Human-readable reason, None when not limited.
    """

    content: str
    limited: bool
    original_size: int
    limit_reason: str | None


@dataclass(frozen=True)
class UploadResult:
    """Text extracted from an uploaded file."""

    text: str
    file_name: str
    file_type: str
    processing_method: str
    cleaned: bool
    limited: bool
    original_size: int
    limit_reason: str | None

    def to_dict(self) -> dict[str, object]:
        """Serialize to the JSON response shape."""
        return {
            "text": self.text,
            "fileName": self.file_name,
            "type": self.file_type,
            "processingMethod": self.processing_method,
            "cleaned": self.cleaned,
            "limited": self.limited,
            "originalSize": self.original_size,
            "limitReason": self.limit_reason,
        }


def limit_content_size(content: str, is_pdf: bool) -> LimitedContent:
    """Cap extracted text by character count, then by paragraph count.

    Args:
        content: Extracted text.
        is_pdf: Whether the text came from a PDF (tighter limit).

    Returns:
        LimitedContent describing what was kept.
    """
    original_size = len(content)
    char_limit = PDF_CHAR_LIMIT if is_pdf else TEXT_CHAR_LIMIT
    label = "PDF" if is_pdf else "Text"

    if original_size > char_limit:
        return LimitedContent(
            content=content[:char_limit],
            limited=True,
            original_size=original_size,
            limit_reason=(
                f"{label} too large ({round(original_size / 1000)}K chars). "
                f"Limited to first {round(char_limit / 1000)}K chars."
            ),
        )

    paragraphs = [p for p in _PARAGRAPH_SPLIT_RE.split(content) if p.strip()]
    if len(paragraphs) > PARAGRAPH_LIMIT:
        return LimitedContent(
            content="\n\n".join(paragraphs[:PARAGRAPH_LIMIT]),
            limited=True,
            original_size=original_size,
            limit_reason=(
                f"Document too long ({len(paragraphs)} paragraphs). "
                f"Limited to first {PARAGRAPH_LIMIT} paragraphs."
            ),
        )

    return LimitedContent(
        content=content, limited=False, original_size=original_size, limit_reason=None
    )


def is_likely_ocr_text(text: str) -> bool:
    """Guess whether text came out of OCR or PDF extraction.

    Looks for words broken across lines, runs of blank lines, and a high
    share of short unpunctuated lines.
    """
    if not text.strip():
        return False
    if re.search(r"\n\s*\n\s*\n", text) or re.search(r"\n\w{1,2}\n", text):
        return True

    lines = [line.strip() for line in text.split("\n") if line.strip()]
    short = sum(
        1
        for line in lines
        if len(line) < _SHORT_LINE_LIMIT and not re.search(r"[.!?:,;]$", line)
    )
    return short / len(lines) > _SHORT_LINE_RATIO


def pre_process_ocr_text(text: str) -> str:
    """Remove page numbers, stray characters and redundant whitespace."""
    processed = re.sub(r"\n{3,}", "\n\n", text)
    processed = re.sub(r"[ \t]{2,}", " ", processed)
    processed = re.sub(r"^\s*\d+\s*$", "", processed, flags=re.M)
    return re.sub(r"\n\s*[b-hj-z]\s*\n", "\n", processed, flags=re.I)


def clean_ocr_text(text: str) -> str:
    """Normalize OCR artifacts and rejoin lines into paragraphs.

    Hyphenated line breaks are merged, typographic quotes and dashes are
    normalized, and a line that starts lowercase is joined to the
    previous one unless that line ended a sentence.
    """
    cleaned = re.sub(r"(\w+)-\s*\n\s*(\w+)", r"\1\2", text)
    cleaned = (
        cleaned.replace("\u2018", "'")
        .replace("\u2019", "'")
        .replace("\u201c", '"')
        .replace("\u201d", '"')
        .replace("\u2013", "-")
        .replace("\u2014", "-")
        .replace("\u00a0", " ")
        .replace("\r\n", "\n")
        .replace("\r", "\n")
    )

    paragraphs: list[str] = []
    current = ""
    for raw_line in cleaned.split("\n"):
        line = re.sub(r"[ \t]{2,}", " ", raw_line.strip())
        if not line:
            if current:
                paragraphs.append(current)
                current = ""
            continue
        ends_sentence = bool(re.search(r"[.!?:)]$|\d$", current))
        if current and line[0].islower() and not ends_sentence:
            current = f"{current} {line}"
        else:
            if current:
                paragraphs.append(current)
            current = line
    if current:
        paragraphs.append(current)

    return "\n\n".join(p for p in paragraphs if len(p) > 3)


def _extract_pdf_text(data: bytes) -> str:
    with fitz.open(stream=data, filetype="pdf") as doc:
        return "\n".join(page.get_text() for page in doc)


def extract_upload_text(file_name: str, data: bytes, mime_type: str = "") -> UploadResult:
    """Convert an uploaded file to cleaned, size-limited text.

    Args:
        file_name: Original file name; its extension selects the parser.
        data: Raw file bytes.
        mime_type: Declared MIME type, used when the extension is unknown.

    Returns:
        UploadResult with the extracted text.

    Raises:
        UnsupportedFileTypeError: For file types that cannot be read.
    """
    log = logger.bind(component="api", subcomponent="upload", file_name=file_name)
    extension = PurePath(file_name).suffix.lower()

    if extension in PDF_EXTENSIONS or "pdf" in mime_type:
        method = "pymupdf"
        is_pdf = True
        content = _extract_pdf_text(data)
        needs_cleaning = True
    elif extension in TEXT_EXTENSIONS or mime_type.startswith("text/"):
        method = "direct-text"
        is_pdf = False
        content = data.decode("utf-8", errors="replace")
        needs_cleaning = is_likely_ocr_text(content)
    else:
        msg = f"Unsupported file type: {extension or mime_type or 'unknown'}"
        raise UnsupportedFileTypeError(msg)

    limited = limit_content_size(content, is_pdf=is_pdf)
    text = limited.content
    if limited.limited:
        method += "-limited"
        log.info("upload_content_limited", reason=limited.limit_reason)

    if needs_cleaning:
        text = clean_ocr_text(pre_process_ocr_text(text))
        method += "-cleaned"

    log.info("upload_processed", method=method, length=len(text))
    return UploadResult(
        text=text,
        file_name=file_name,
        file_type=mime_type or extension,
        processing_method=method,
        cleaned=needs_cleaning,
        limited=limited.limited,
        original_size=limited.original_size,
        limit_reason=limited.limit_reason,
    )

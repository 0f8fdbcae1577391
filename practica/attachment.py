# practica/attachment.py
from __future__ import annotations
import logging
from dataclasses import dataclass

import fitz

from .config import PDF_CONTENT_TYPE, PDF_MAX_BYTES
from .errors import ValidationError

logger = logging.getLogger(__name__)

WRONG_TYPE_TITLE: str = 'Archivo inválido'
WRONG_TYPE_MESSAGE: str = 'Solo se permiten archivos PDF.'
TOO_LARGE_TITLE: str = 'Archivo demasiado grande'
TOO_LARGE_MESSAGE: str = 'El archivo no puede ser mayor a 1MB.'
UNREADABLE_MESSAGE: str = 'El archivo PDF está dañado o no se puede leer.'


@dataclass(frozen=True)
class PdfAttachment:
    """The supporting document, held as an opaque blob until upload."""
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_upload(cls, filename: str, content_type: str | None, data: bytes) -> PdfAttachment:
        """
        Accepts a selected file only if it is exactly `application/pdf` and
        at most 1 MiB. Anything else raises ValidationError and never
        reaches the submission.
        """
        if content_type != PDF_CONTENT_TYPE:
            raise ValidationError([WRONG_TYPE_MESSAGE], title=WRONG_TYPE_TITLE)
        if len(data) > PDF_MAX_BYTES:
            raise ValidationError([TOO_LARGE_MESSAGE], title=TOO_LARGE_TITLE)
        return cls(filename=filename, content_type=content_type, data=data)


def count_pdf_pages(data: bytes) -> int:
    """
    Opens the PDF with PyMuPDF and returns its page count.
    Raises ValidationError when the bytes are not a readable PDF.
    """
    try:
        with fitz.open(stream=data, filetype='pdf') as doc:
            page_count = doc.page_count
    except (RuntimeError, ValueError) as e:
        logger.warning(f"Selected PDF could not be opened: {e}")
        raise ValidationError([UNREADABLE_MESSAGE], title=WRONG_TYPE_TITLE) from e
    if page_count < 1:
        raise ValidationError([UNREADABLE_MESSAGE], title=WRONG_TYPE_TITLE)
    return page_count

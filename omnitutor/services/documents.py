import io
from pathlib import Path

import fitz  # PyMuPDF
from pptx import Presentation

PDF_TYPES = ("application/pdf",)
PPTX_TYPES = (
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
)
TEXT_SUFFIXES = (".txt", ".md", ".csv", ".json", ".html", ".htm")


class UnsupportedDocument(ValueError):
    pass


class DocumentService:
    """Pull plain text out of uploaded documents so it can be summarised."""

    @staticmethod
    def kind(mime_type: str, filename: str) -> str:
        """Classify an upload as ``pdf``, ``pptx``, ``image``, ``text`` or ``other``."""
        ext = Path(filename).suffix.lower()
        if mime_type in PDF_TYPES or ext == ".pdf":
            return "pdf"
        if mime_type in PPTX_TYPES or ext == ".pptx":
            return "pptx"
        if mime_type.startswith("image/"):
            return "image"
        if mime_type.startswith("text/") or ext in TEXT_SUFFIXES:
            return "text"
        return "other"

    @staticmethod
    def extract_text(data: bytes, mime_type: str, filename: str) -> str:
        """Dispatch to the correct extractor based on type and extension."""
        kind = DocumentService.kind(mime_type, filename)
        if kind == "pdf":
            return DocumentService._pdf_text(data)
        if kind == "pptx":
            return DocumentService._pptx_text(data)
        if kind == "text":
            return data.decode("utf-8", errors="replace")
        raise UnsupportedDocument(f"Unsupported document type: {mime_type or filename}")

    # ------------------------------------------------------------------
    # PDF
    # ------------------------------------------------------------------
    @staticmethod
    def _pdf_text(data: bytes) -> str:
        doc = fitz.open(stream=data, filetype="pdf")
        try:
            pages = []
            for page_idx in range(len(doc)):
                text = doc[page_idx].get_text().strip()
                if text:
                    pages.append(f"[Page {page_idx + 1}]\n{text}")
        finally:
            doc.close()
        return "\n\n".join(pages)

    # ------------------------------------------------------------------
    # PPTX
    # ------------------------------------------------------------------
    @staticmethod
    def _pptx_text(data: bytes) -> str:
        prs = Presentation(io.BytesIO(data))
        slides = []
        for slide_idx, slide in enumerate(prs.slides):
            texts = [
                shape.text_frame.text.strip()
                for shape in slide.shapes
                if shape.has_text_frame and shape.text_frame.text.strip()
            ]
            if texts:
                slides.append(f"[Slide {slide_idx + 1}]\n" + "\n".join(texts))
        return "\n\n".join(slides)

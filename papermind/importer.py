"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/importer.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Pre-flight conversion of intake artifacts. Maps file types,
                converts images (incl. multi-page TIFF) into a PDF archive
                and produces thumbnails and model-ready page images.
------------------------------------------------------------------------------
"""

import io
from typing import Dict, Optional

import fitz  # PyMuPDF
from PIL import Image, UnidentifiedImageError

from papermind.errors import PermanentProcessingError
from papermind.logger import get_logger

logger = get_logger("importer")

PDF_MIME = "application/pdf"

# Whitelist of accepted intake types
MIME_TYPES: Dict[str, str] = {
    ".pdf": PDF_MIME,
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".tiff": "image/tiff",
    ".tif": "image/tiff",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
    ".gif": "image/gif",
}

EXTENSIONS: Dict[str, str] = {
    PDF_MIME: "pdf",
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/tiff": "tiff",
    "image/webp": "webp",
    "image/bmp": "bmp",
    "image/gif": "gif",
}

THUMBNAIL_WIDTH = 400
VISION_MAX_SIZE = (1200, 1600)


def mime_for(filename: str) -> Optional[str]:
    """Returns the mime type for a supported filename, else None."""
    dot = filename.rfind(".")
    if dot == -1:
        return None
    return MIME_TYPES.get(filename[dot:].lower())


def extension_for(mime_type: str) -> str:
    return EXTENSIONS.get(mime_type, "bin")


def is_image(mime_type: str) -> bool:
    return mime_type.startswith("image/")


class ImageImporter:
    """
    Converts raster intake files into a standardized PDF.
    Uses PyMuPDF for the conversion and Pillow for bitmaps.
    """

    @staticmethod
    def convert_to_pdf(data: bytes, mime_type: str) -> bytes:
        """
        Converts image bytes into a PDF. Multi-page TIFFs keep all pages.

        Raises:
            PermanentProcessingError: If the data is not a readable image.
        """
        filetype = extension_for(mime_type)
        try:
            with fitz.open(stream=data, filetype=filetype) as img_doc:
                pdf_bytes = img_doc.convert_to_pdf()
                page_count = img_doc.page_count
        except (RuntimeError, ValueError) as e:
            # PyMuPDF reports unreadable streams as RuntimeError subclasses
            raise PermanentProcessingError(f"Unreadable image ({mime_type}): {e}") from e

        final_doc = fitz.open()
        try:
            with fitz.open("pdf", pdf_bytes) as pdf_pages:
                final_doc.insert_pdf(pdf_pages)
            # garbage=4: resource dedup, deflate: stream compression
            result = final_doc.tobytes(garbage=4, deflate=True)
        finally:
            final_doc.close()
        logger.info(f"Converted {mime_type} into PDF ({page_count} pages)")
        return result

    @staticmethod
    def to_png(data: bytes) -> bytes:
        """Normalizes any supported raster image to PNG (first frame)."""
        try:
            with Image.open(io.BytesIO(data)) as img:
                img.seek(0)
                buf = io.BytesIO()
                img.convert("RGB").save(buf, format="PNG")
                return buf.getvalue()
        except (UnidentifiedImageError, OSError) as e:
            raise PermanentProcessingError(f"Unreadable image: {e}") from e

    @staticmethod
    def thumbnail(png_bytes: bytes, width: int = THUMBNAIL_WIDTH) -> bytes:
        """Scales a page bitmap to a webp thumbnail of the given width."""
        with Image.open(io.BytesIO(png_bytes)) as img:
            ratio = width / float(img.width)
            height = max(1, int(img.height * ratio))
            thumb = img.convert("RGB").resize((width, height), Image.Resampling.LANCZOS)
            buf = io.BytesIO()
            thumb.save(buf, format="WEBP", quality=80)
            return buf.getvalue()

    @staticmethod
    def for_vision(png_bytes: bytes) -> bytes:
        """Downscales a page bitmap to fit the model's preferred size."""
        with Image.open(io.BytesIO(png_bytes)) as img:
            if img.width <= VISION_MAX_SIZE[0] and img.height <= VISION_MAX_SIZE[1]:
                return png_bytes
            copy = img.convert("RGB")
            copy.thumbnail(VISION_MAX_SIZE, Image.Resampling.LANCZOS)
            buf = io.BytesIO()
            copy.save(buf, format="PNG")
            return buf.getvalue()

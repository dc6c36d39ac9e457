"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/rasterizer.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Renders PDF pages to PNG bitmaps via poppler (pdf2image).
                Every call works in its own temporary directory which is
                removed on all exit paths.
------------------------------------------------------------------------------
"""

import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional, Union

from pdf2image import convert_from_path, pdfinfo_from_path
from pdf2image.exceptions import (
    PDFInfoNotInstalledError,
    PDFPageCountError,
    PDFPopplerTimeoutError,
    PDFSyntaxError,
)

from papermind.errors import NotFoundError, PermanentProcessingError, TransientInfraError
from papermind.logger import get_logger

logger = get_logger("rasterizer")

DEFAULT_DPI = 150
EXTRACTION_DPI = 200


class PdfRasterizer:
    """
    Thin wrapper around the poppler command line tools.

    Args:
        timeout: Seconds per external tool invocation.
        poppler_path: Optional directory holding pdftoppm/pdfinfo.
    """

    def __init__(self, timeout: int = 60, poppler_path: Optional[str] = None) -> None:
        self.timeout = timeout
        self.poppler_path = poppler_path

    def page_count(self, pdf_path: Union[str, Path]) -> int:
        try:
            info = pdfinfo_from_path(str(pdf_path), poppler_path=self.poppler_path, timeout=self.timeout)
        except (PDFPopplerTimeoutError, subprocess.TimeoutExpired) as e:
            raise TransientInfraError(f"pdfinfo timed out after {self.timeout}s") from e
        except PDFInfoNotInstalledError as e:
            raise TransientInfraError("poppler (pdfinfo) is not installed") from e
        except (PDFPageCountError, PDFSyntaxError) as e:
            raise PermanentProcessingError(f"Unreadable PDF: {e}") from e
        return int(info.get("Pages", 0))

    def render_page(self, pdf_path: Union[str, Path], page: int, dpi: int = DEFAULT_DPI) -> bytes:
        """
        Renders one page (1-indexed) to PNG bytes.

        Raises:
            NotFoundError: If the page does not exist.
        """
        if page < 1:
            raise NotFoundError(f"Page {page} does not exist")
        pages = self._render(Path(pdf_path), first=page, last=page, dpi=dpi)
        if not pages:
            raise NotFoundError(f"Page {page} not rendered from {Path(pdf_path).name}")
        return pages[0]

    def render_document(self, pdf_bytes: bytes, max_pages: int, dpi: int = EXTRACTION_DPI) -> List[bytes]:
        """Renders the first max_pages pages of an in-memory PDF."""
        with tempfile.TemporaryDirectory(prefix="papermind-src-") as tmp:
            src = Path(tmp) / "input.pdf"
            src.write_bytes(pdf_bytes)
            pages = self._render(src, first=1, last=max_pages, dpi=dpi)
        if not pages:
            raise PermanentProcessingError("PDF rendered no pages")
        return pages

    def _render(self, pdf_path: Path, first: int, last: int, dpi: int) -> List[bytes]:
        if not pdf_path.is_file():
            raise NotFoundError(f"PDF not found: {pdf_path}")

        with tempfile.TemporaryDirectory(prefix="papermind-render-") as out_dir:
            try:
                convert_from_path(
                    str(pdf_path),
                    dpi=dpi,
                    first_page=first,
                    last_page=last,
                    fmt="png",
                    output_folder=out_dir,
                    paths_only=True,
                    poppler_path=self.poppler_path,
                    timeout=self.timeout,
                )
            except (PDFPopplerTimeoutError, subprocess.TimeoutExpired) as e:
                raise TransientInfraError(f"pdftoppm timed out after {self.timeout}s") from e
            except PDFInfoNotInstalledError as e:
                raise TransientInfraError("poppler (pdftoppm) is not installed") from e
            except (PDFPageCountError, PDFSyntaxError) as e:
                raise PermanentProcessingError(f"Unreadable PDF: {e}") from e

            # Output names depend on the poppler version and page count width
            produced = sorted(Path(out_dir).glob("*.png"))
            logger.debug(f"Rendered {len(produced)} page(s) of {pdf_path.name} at {dpi} dpi")
            return [p.read_bytes() for p in produced]

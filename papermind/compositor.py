"""
------------------------------------------------------------------------------
Project:        PaperMind
File:           papermind/compositor.py
Version:        1.0.0
Producer:       thorsten.schnebeck@gmx.net
Generator:      Antigravity
Description:    Overlays signature images onto PDF pages using Form XObjects.
                Placement is given as page fractions (top-left origin) and
                mapped into PDF user space (bottom-left origin).
------------------------------------------------------------------------------
"""

import io
from typing import List, Optional, Set, Tuple

import pikepdf
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from papermind.errors import PermanentProcessingError, ValidationError
from papermind.logger import get_logger
from papermind.models import PdfRect, PlacementRect, new_id

logger = get_logger("compositor")

# Marks Form XObjects that carry a placed signature
SIGNATURE_KEY = pikepdf.Name("/PaperMind_SignatureID")


def to_pdf_rect(rect: PlacementRect, page_width: float, page_height: float) -> PdfRect:
    """
    Maps a fractional top-left-origin rectangle onto a page of the given
    size in PDF space (bottom-left origin).
    """
    width = rect.width * page_width
    height = rect.height * page_height
    return PdfRect(
        x=rect.x * page_width,
        y=page_height - (rect.y + rect.height) * page_height,
        width=width,
        height=height,
    )


class SignatureCompositor:
    """
    Applies signature images to PDF documents as page overlays. Each
    overlay Form XObject is tagged with its signature id so applied
    signatures can be listed later.
    """

    def page_size(self, pdf_bytes: bytes, page: int) -> Tuple[float, float]:
        with pikepdf.Pdf.open(io.BytesIO(pdf_bytes)) as pdf:
            target = self._page(pdf, page)
            llx, lly, urx, ury = [float(v) for v in target.MediaBox]
            return urx - llx, ury - lly

    def apply_signature(
        self,
        pdf_bytes: bytes,
        page: int,
        image_bytes: bytes,
        rect: PlacementRect,
        signature_id: Optional[str] = None,
    ) -> bytes:
        """
        Overlays an image on a page and returns the re-serialized PDF.

        Args:
            pdf_bytes: The current PDF (archive or original).
            page: Target page, 1-indexed.
            image_bytes: Signature raster (PNG, transparency kept).
            rect: Placement as page fractions, top-left origin.
            signature_id: Stored on the overlay for later inspection.

        Raises:
            ValidationError: If the page does not exist.
            PermanentProcessingError: If the PDF or image cannot be read.
        """
        try:
            target_pdf = pikepdf.Pdf.open(io.BytesIO(pdf_bytes))
        except pikepdf.PdfError as e:
            raise PermanentProcessingError(f"Unreadable PDF: {e}") from e

        with target_pdf:
            target_page = self._page(target_pdf, page)
            llx, lly, urx, ury = [float(v) for v in target_page.MediaBox]
            page_w, page_h = urx - llx, ury - lly
            placed = to_pdf_rect(rect, page_w, page_h)

            # 1. Overlay page with ReportLab, in page-local coordinates
            packet = io.BytesIO()
            can = canvas.Canvas(packet, pagesize=(page_w, page_h))
            try:
                can.drawImage(
                    ImageReader(io.BytesIO(image_bytes)),
                    placed.x, placed.y,
                    width=placed.width, height=placed.height,
                    mask="auto",
                )
            except OSError as e:
                raise PermanentProcessingError(f"Unreadable signature image: {e}") from e
            can.save()
            packet.seek(0)

            # 2. Wrap the overlay page as a Form XObject on the target page.
            # The overlay stays open until save, copied streams are read lazily.
            overlay_pdf = pikepdf.Pdf.open(packet)
            try:
                before = self._xobject_names(target_page)
                target_page.add_overlay(overlay_pdf.pages[0], pikepdf.Rectangle(llx, lly, urx, ury))
                added = [name for name in self._xobject_names(target_page) if name not in before]
                if len(added) != 1:
                    raise PermanentProcessingError(f"Overlay on page {page} could not be placed")

                overlay_id = signature_id or new_id()
                target_page.Resources.XObject[added[0]][SIGNATURE_KEY] = pikepdf.String(overlay_id)

                out = io.BytesIO()
                target_pdf.save(out)
            finally:
                overlay_pdf.close()

        logger.info(
            f"Placed signature {overlay_id} on page {page} at "
            f"({placed.x:.1f}, {placed.y:.1f}) {placed.width:.1f}x{placed.height:.1f}"
        )
        return out.getvalue()

    def applied_signatures(self, pdf_bytes: bytes) -> List[Tuple[int, str]]:
        """Lists (page, signature_id) for every overlay this compositor placed."""
        found: List[Tuple[int, str]] = []
        with pikepdf.Pdf.open(io.BytesIO(pdf_bytes)) as pdf:
            for index, page in enumerate(pdf.pages, start=1):
                if "/Resources" not in page or "/XObject" not in page.Resources:
                    continue
                for xobj in page.Resources.XObject.values():
                    if SIGNATURE_KEY in xobj:
                        found.append((index, str(xobj[SIGNATURE_KEY])))
        return found

    @staticmethod
    def _page(pdf: pikepdf.Pdf, page: int) -> pikepdf.Page:
        if page < 1 or page > len(pdf.pages):
            raise ValidationError(f"Page {page} out of range (document has {len(pdf.pages)} pages)")
        return pdf.pages[page - 1]

    @staticmethod
    def _xobject_names(page: pikepdf.Page) -> Set[str]:
        if "/Resources" not in page or "/XObject" not in page.Resources:
            return set()
        return {str(name) for name in page.Resources.XObject.keys()}

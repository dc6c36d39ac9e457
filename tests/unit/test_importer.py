import io

import fitz
import pytest
from PIL import Image

from papermind.errors import PermanentProcessingError
from papermind.importer import ImageImporter, extension_for, is_image, mime_for

from tests.helpers import make_png


def _tiff(pages):
    frames = [Image.new("RGB", (50, 70), (i * 40, 0, 0)) for i in range(pages)]
    buf = io.BytesIO()
    frames[0].save(buf, format="TIFF", save_all=True, append_images=frames[1:])
    return buf.getvalue()


@pytest.mark.parametrize("filename, expected", [
    ("scan.PDF", "application/pdf"),
    ("photo.jpeg", "image/jpeg"),
    ("fax.tif", "image/tiff"),
    ("notes.txt", None),
    ("README", None),
])
def test_mime_for(filename, expected):
    assert mime_for(filename) == expected


def test_extension_and_image_helpers():
    assert extension_for("image/jpeg") == "jpg"
    assert extension_for("application/x-unknown") == "bin"
    assert is_image("image/png")
    assert not is_image("application/pdf")


def test_convert_png_to_pdf():
    pdf = ImageImporter.convert_to_pdf(make_png((60, 80), (255, 255, 255, 255)), "image/png")
    with fitz.open("pdf", pdf) as doc:
        assert doc.page_count == 1


def test_multipage_tiff_keeps_all_pages():
    pdf = ImageImporter.convert_to_pdf(_tiff(3), "image/tiff")
    with fitz.open("pdf", pdf) as doc:
        assert doc.page_count == 3


def test_unreadable_image_is_permanent():
    with pytest.raises(PermanentProcessingError):
        ImageImporter.to_png(b"definitely not an image")


def test_thumbnail_width():
    thumb = ImageImporter.thumbnail(make_png((800, 1000)), width=200)
    with Image.open(io.BytesIO(thumb)) as img:
        assert img.format == "WEBP"
        assert img.size == (200, 250)


def test_for_vision_downscales_large_pages():
    small = make_png((100, 100))
    assert ImageImporter.for_vision(small) is small

    large = ImageImporter.for_vision(make_png((2400, 3200)))
    with Image.open(io.BytesIO(large)) as img:
        assert img.width <= 1200 and img.height <= 1600

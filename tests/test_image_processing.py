import io

import pytest
from PIL import Image

from files_manager.objectstorage.image_processing import InvalidImage, create_thumbnails
from tests.tools import png_bytes


def _size(data: bytes) -> tuple[int, int]:
    return Image.open(io.BytesIO(data)).size


def test_thumbnails_keep_aspect_ratio():
    thumbnails = create_thumbnails(png_bytes(800, 600))
    assert set(thumbnails) == {100, 250, 500}
    assert _size(thumbnails[100]) == (100, 75)
    assert _size(thumbnails[250]) == (250, 188)
    assert _size(thumbnails[500]) == (500, 375)
    assert Image.open(io.BytesIO(thumbnails[100])).format == "PNG"


def test_thumbnail_is_deterministic():
    image = png_bytes(640, 480)
    assert create_thumbnails(image, (250,)) == create_thumbnails(image, (250,))


def test_thumbnail_of_narrow_image():
    # very wide images still get at least one pixel of height
    assert _size(create_thumbnails(png_bytes(2000, 2), (100,))[100]) == (100, 1)


def test_jpeg_stays_jpeg():
    buffer = io.BytesIO()
    Image.new("RGB", (300, 300), (0, 0, 255)).save(buffer, format="JPEG")
    img = Image.open(io.BytesIO(create_thumbnails(buffer.getvalue(), (100,))[100]))
    assert img.format == "JPEG"
    assert img.size == (100, 100)


def test_invalid_image():
    with pytest.raises(ValueError):
        create_thumbnails(b"")
    with pytest.raises((ValueError, OSError)):
        create_thumbnails(b"this is not an image")


def test_image_too_large():
    with pytest.raises(InvalidImage, match="800x600 exceed maximum allowed size of 500x500"):
        create_thumbnails(png_bytes(800, 600), max_size=500)
    assert set(create_thumbnails(png_bytes(800, 600), max_size=800)) == {100, 250, 500}


def test_unsupported_format():
    buffer = io.BytesIO()
    Image.new("RGB", (300, 300)).save(buffer, format="BMP")
    with pytest.raises(InvalidImage, match="image/bmp"):
        create_thumbnails(buffer.getvalue())

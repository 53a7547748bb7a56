import io

import pytest

from PIL import Image

from fitspo.errors import ImageTooLargeError, InvalidImageError, UnsupportedImageError
from fitspo.storage import PostImageStore


ALLOWED = ("image/jpeg", "image/png", "image/webp")


def _image_bytes(fmt: str, size=(10, 4)) -> io.BytesIO:
    buf = io.BytesIO()
    Image.new("RGB", size, color=(10, 120, 200)).save(buf, format=fmt)
    buf.seek(0)
    return buf


@pytest.fixture
def store(tmp_path):
    return PostImageStore(tmp_path / "images", max_bytes=64 * 1024, allowed_types=ALLOWED)


def test_store_names_file_after_post_and_detected_type(store):
    # Declared content type is irrelevant; the suffix follows what Pillow decodes.
    image = store.store(_image_bytes("JPEG"), "abc123")

    assert image.path == store.root / "abc123.jpg"
    assert image.path.exists()
    assert (image.width, image.height) == (10, 4)
    assert image.content_type == "image/jpeg"
    assert list(store.root.glob("*.upload")) == []


def test_oversized_upload_leaves_nothing_behind(tmp_path):
    store = PostImageStore(tmp_path, max_bytes=100, allowed_types=ALLOWED)

    with pytest.raises(ImageTooLargeError):
        store.store(io.BytesIO(b"\x00" * 1000), "big")

    assert list(tmp_path.iterdir()) == []


def test_garbage_is_invalid(store):
    with pytest.raises(InvalidImageError) as exc:
        store.store(io.BytesIO(b"not an image at all"), "junk")

    assert exc.value.status_code == 400
    assert list(store.root.iterdir()) == []


def test_decodable_but_unsupported_format(store):
    with pytest.raises(UnsupportedImageError) as exc:
        store.store(_image_bytes("GIF"), "anim")

    assert exc.value.status_code == 415
    assert "jpg, png, webp" in str(exc.value)


def test_delete_tolerates_missing_file(store):
    image = store.store(_image_bytes("PNG"), "gone")

    store.delete(str(image.path))
    store.delete(str(image.path))
    store.delete(None)

    assert not image.path.exists()

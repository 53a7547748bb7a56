"""Post images on local disk, one file per post named after the post id."""

from __future__ import annotations

import logging

from pathlib import Path
from typing import BinaryIO, Iterable, NamedTuple

from PIL import Image, UnidentifiedImageError

from fitspo.errors import ImageTooLargeError, InvalidImageError, UnsupportedImageError
from fitspo.settings import Settings


logger = logging.getLogger(__name__)

SUFFIX_BY_CONTENT_TYPE = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}

COPY_CHUNK_BYTES = 256 * 1024


class StoredImage(NamedTuple):
    path: Path
    width: int
    height: int
    content_type: str


class PostImageStore:
    def __init__(self, root: Path, *, max_bytes: int, allowed_types: Iterable[str]):
        self.root = Path(root)
        self.max_bytes = max_bytes
        self.allowed_types = frozenset(allowed_types)

    @classmethod
    def from_settings(cls, s: Settings) -> "PostImageStore":
        return cls(s.inputs_dir, max_bytes=s.max_upload_bytes, allowed_types=s.allowed_content_types)

    def ensure_dir(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, post_id: str, content_type: str) -> Path:
        return self.root / f"{post_id}{SUFFIX_BY_CONTENT_TYPE[content_type]}"

    def store(self, stream: BinaryIO, post_id: str) -> StoredImage:
        """Copy an upload into the store under the post id.

        The bytes land in a staging file first; it only gets its final name
        once Pillow has decoded it and the format is one we serve.
        """
        self.ensure_dir()
        staging = self.root / f"{post_id}.upload"
        try:
            self._copy_capped(stream, staging)
            width, height, content_type = self._inspect(staging)
            final = self.path_for(post_id, content_type)
            staging.replace(final)
        except (ImageTooLargeError, InvalidImageError, UnsupportedImageError, OSError):
            staging.unlink(missing_ok=True)
            raise

        logger.info("stored post image post_id=%s type=%s size=%sx%s", post_id, content_type, width, height)
        return StoredImage(final, width, height, content_type)

    def delete(self, path: str | None) -> None:
        if not path:
            return
        try:
            Path(path).unlink(missing_ok=True)
        except OSError:
            logger.warning("could not delete post image path=%s", path, exc_info=True)

    def _copy_capped(self, stream: BinaryIO, dest: Path) -> None:
        written = 0
        with dest.open("wb") as out:
            for chunk in iter(lambda: stream.read(COPY_CHUNK_BYTES), b""):
                written += len(chunk)
                if written > self.max_bytes:
                    raise ImageTooLargeError(f"File too large (max {self.max_bytes // (1024 * 1024)}MB).")
                out.write(chunk)

    def _inspect(self, path: Path) -> tuple[int, int, str]:
        try:
            # verify() leaves the image unusable, so sizes come from a second open.
            with Image.open(path) as im:
                im.verify()
            with Image.open(path) as im:
                width, height = im.size
                content_type = Image.MIME.get(im.format or "")
        except (UnidentifiedImageError, SyntaxError, ValueError, OSError):
            raise InvalidImageError("Invalid image file.")

        if content_type not in self.allowed_types or content_type not in SUFFIX_BY_CONTENT_TYPE:
            allowed = ", ".join(sorted(SUFFIX_BY_CONTENT_TYPE.get(t, t).lstrip(".") for t in self.allowed_types))
            raise UnsupportedImageError(f"Unsupported image type. Allowed: {allowed}.")
        return width, height, content_type

"""
Receipt Image Preparation

Phone photos come in at full camera resolution. Before a receipt or
settlement proof is stored we check the bytes really are an image and
shrink it to a size that is still readable on screen.

The result is always a JPEG, so the stored blob (and its key) do not
depend on which format the picker happened to hand us.
"""

from io import BytesIO

from PIL import Image, ImageOps, UnidentifiedImageError

from tally.services.blobs.store import BlobStoreError


class InvalidImageError(BlobStoreError):
    """The uploaded bytes are not a decodable image."""
    pass


JPEG_QUALITY = 85


def prepare_receipt_image(
    data: bytes,
    max_dimension: int = 2048,
    max_size_bytes: int = 10 * 1024 * 1024,
) -> bytes:
    """
    Validate and normalize a receipt photo.

    Args:
        data: Raw bytes from the picker
        max_dimension: Longest side after resizing (aspect ratio is kept)
        max_size_bytes: Reject inputs larger than this

    Returns:
        JPEG bytes

    Raises:
        InvalidImageError: If the bytes are empty, too large or not an image
    """
    if not data:
        raise InvalidImageError("Image is empty")
    if len(data) > max_size_bytes:
        raise InvalidImageError(
            f"Image is {len(data)} bytes, larger than the {max_size_bytes} byte limit"
        )

    try:
        # verify() leaves the image unusable, so open twice
        Image.open(BytesIO(data)).verify()
        img = Image.open(BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise InvalidImageError(f"Not a valid image: {e}") from e

    # Honour the camera's rotation flag before it is stripped
    img = ImageOps.exif_transpose(img)

    if max(img.size) > max_dimension:
        img.thumbnail((max_dimension, max_dimension))

    if img.mode != "RGB":
        img = img.convert("RGB")

    out = BytesIO()
    img.save(out, format="JPEG", quality=JPEG_QUALITY, optimize=True)
    return out.getvalue()

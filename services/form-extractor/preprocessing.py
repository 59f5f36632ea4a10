"""Image helpers for uploaded form images.

Images are decoded with OpenCV only to validate them and probe their size;
the bytes sent to a provider stay untouched unless a maximum width is
configured.
"""

import logging

import cv2
import numpy as np

logger = logging.getLogger(__name__)


def _decode(image_bytes: bytes) -> np.ndarray | None:
    """Decode raw bytes into an OpenCV BGR array."""
    arr = np.frombuffer(image_bytes, dtype=np.uint8)
    if arr.size == 0:
        return None
    return cv2.imdecode(arr, cv2.IMREAD_COLOR)


def image_size(image_bytes: bytes) -> tuple[int, int] | None:
    """Return (width, height), or None if the bytes are not a decodable image."""
    img = _decode(image_bytes)
    if img is None:
        return None
    h, w = img.shape[:2]
    return w, h


def _resize_to_width(img: np.ndarray, max_width: int) -> np.ndarray:
    h, w = img.shape[:2]
    if w <= max_width:
        return img
    height = int(round(h * max_width / w))
    return cv2.resize(img, (max_width, height), interpolation=cv2.INTER_AREA)


def _encode(img: np.ndarray, media_type: str, fallback: bytes) -> bytes:
    """Encode in the original format where OpenCV can, PNG otherwise."""
    ext, params = {
        "image/jpeg": (".jpg", [cv2.IMWRITE_JPEG_QUALITY, 90]),
        "image/jpg": (".jpg", [cv2.IMWRITE_JPEG_QUALITY, 90]),
        "image/webp": (".webp", [cv2.IMWRITE_WEBP_QUALITY, 90]),
    }.get(media_type, (".png", []))
    try:
        success, buf = cv2.imencode(ext, img, params)
        if success:
            return buf.tobytes()
    except cv2.error as e:
        logger.warning("preprocessing: encode failed: %s", e)

    return fallback


def optimize_image(image_bytes: bytes, media_type: str, max_width: int) -> bytes:
    """Scale an image down to max_width, keeping aspect ratio.

    Returns the original bytes when no resize is needed or decoding fails.
    """
    if max_width <= 0:
        return image_bytes

    img = _decode(image_bytes)
    if img is None:
        logger.warning("preprocessing: could not decode image, returning original")
        return image_bytes

    if img.shape[1] <= max_width:
        return image_bytes

    resized = _resize_to_width(img, max_width)
    logger.debug("preprocessing: resized %dpx -> %dpx wide", img.shape[1], resized.shape[1])
    return _encode(resized, media_type, fallback=image_bytes)

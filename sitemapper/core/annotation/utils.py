"""
Pure utility functions for annotation logic.

These functions have no side effects and can be tested in isolation.
"""

import base64
import binascii
import math
import re
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import cv2
import numpy as np

from ..errors import ImageDecodeError
from .state import Point

ImagePayload = Union[bytes, bytearray, str]

_TYPOLOGY_SEPARATORS = re.compile(r"[,\s/]+")
_LEADING_INT = re.compile(r"[+-]?\d+")
_DATA_URL = re.compile(r"^data:(?P<mime>[\w/+.-]+)?(;[\w=-]+)*;base64,", re.IGNORECASE)


def typology_tokens(typology: str) -> List[str]:
    """Split a typology label on commas, whitespace and slashes."""
    if not typology:
        return []
    return [t for t in _TYPOLOGY_SEPARATORS.split(typology) if t.strip()]


def _typology_key(token: str):
    match = _LEADING_INT.match(token)
    if match:
        return (0, int(match.group(0)), token.casefold(), token)
    return (1, 0, token.casefold(), token)


def sort_typology(typology: str) -> str:
    """
    Sort typology tokens for display.

    Tokens starting with an integer come first, ordered numerically;
    the rest follow in case-insensitive lexicographic order. The result
    is joined with ", ", so sorting it again yields the same string.

    Args:
        typology: Raw free-text label

    Returns:
        Normalized label, empty string when there are no tokens
    """
    return ", ".join(sorted(typology_tokens(typology), key=_typology_key))


def display_typology(typology: str) -> str:
    """Badge text: the sorted typology, or a dash when empty."""
    return sort_typology(typology) or "-"


def renumber_points(points: Sequence[Point]) -> List[Point]:
    """Assign ``number`` = 1-based list position, in place. Returns the list."""
    points = list(points)
    for index, point in enumerate(points):
        point.number = index + 1
    return points


def numbers_are_dense(points: Sequence[Point]) -> bool:
    return [p.number for p in points] == list(range(1, len(points) + 1))


def distance(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])


def filter_points(points: Iterable[Point], term: str) -> List[Point]:
    """Case-insensitive search on description, typology and number."""
    if not term:
        return list(points)
    term = term.lower()
    return [
        p
        for p in points
        if term in (p.description or "").lower()
        or term in str(p.number)
        or term in (p.typology or "").lower()
    ]


def payload_to_bytes(payload: ImagePayload) -> bytes:
    """
    Turn an image payload into raw encoded bytes.

    Accepts raw bytes, ``data:`` URLs and bare base64 strings.

    Raises:
        ImageDecodeError: If the payload is empty or not valid base64
    """
    if isinstance(payload, (bytes, bytearray)):
        data = bytes(payload)
    elif isinstance(payload, str):
        text = _DATA_URL.sub("", payload.strip(), count=1)
        try:
            data = base64.b64decode(text, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ImageDecodeError(f"Invalid base64 image payload: {e}") from e
    else:
        raise ImageDecodeError(f"Unsupported image payload type: {type(payload)}")

    if not data:
        raise ImageDecodeError("Empty image payload")
    return data


def decode_image(payload: ImagePayload) -> np.ndarray:
    """
    Decode an image payload into a BGR or BGRA array.

    Raises:
        ImageDecodeError: If the payload cannot be decoded
    """
    data = payload_to_bytes(payload)
    buffer = np.frombuffer(data, dtype=np.uint8)
    image = cv2.imdecode(buffer, cv2.IMREAD_UNCHANGED)
    if image is None:
        raise ImageDecodeError("Payload is not a decodable image")

    if image.ndim == 2:
        image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.dtype != np.uint8:
        # 16-bit PNG/TIFF
        image = (image / 257).astype(np.uint8)
    return image


def encode_data_url(image: np.ndarray, ext: str = ".png") -> str:
    """Encode an array as a base64 ``data:`` URL."""
    ok, buffer = cv2.imencode(ext, image)
    if not ok:
        raise ValueError(f"Could not encode image as {ext}")
    mime = "image/jpeg" if ext in (".jpg", ".jpeg") else f"image/{ext.lstrip('.')}"
    return f"data:{mime};base64," + base64.b64encode(buffer.tobytes()).decode("ascii")


def composite_on_background(
    image: np.ndarray, background: Tuple[int, int, int] = (255, 255, 255)
) -> np.ndarray:
    """
    Flatten a BGR(A) image onto an opaque background.

    Args:
        image: BGR or BGRA uint8 image
        background: BGR fill color

    Returns:
        Opaque BGR image
    """
    validate_image(image)
    if image.shape[2] == 3:
        return image.copy()

    bgr = image[:, :, :3].astype(np.float32)
    alpha = image[:, :, 3:4].astype(np.float32) / 255.0
    fill = np.empty_like(bgr)
    fill[:] = np.array(background, dtype=np.float32)
    return np.round(bgr * alpha + fill * (1.0 - alpha)).astype(np.uint8)


def validate_image(image: np.ndarray) -> None:
    """
    Validate that image has correct format.

    Raises:
        ValueError: If image is invalid
    """
    if image is None:
        raise ValueError("Image is None")

    if not isinstance(image, np.ndarray):
        raise ValueError(f"Image must be numpy array, got {type(image)}")

    if image.ndim != 3:
        raise ValueError(f"Image must be 3D (H, W, C), got shape {image.shape}")

    if image.shape[2] not in (3, 4):
        raise ValueError(f"Image must have 3 or 4 channels, got {image.shape[2]}")

    if image.dtype != np.uint8:
        raise ValueError(f"Invalid image dtype: {image.dtype}")


def image_size(image: np.ndarray) -> Tuple[int, int]:
    """``(width, height)`` of an image array."""
    return int(image.shape[1]), int(image.shape[0])


def contain_fit(
    src_w: float, src_h: float, box_w: float, box_h: float
) -> Optional[Tuple[float, float, float, float]]:
    """
    Scale ``src`` to fit inside ``box`` keeping its aspect ratio.

    Returns:
        ``(offset_x, offset_y, width, height)`` centered in the box, or
        None when either size is degenerate
    """
    if src_w <= 0 or src_h <= 0 or box_w <= 0 or box_h <= 0:
        return None
    scale = min(box_w / src_w, box_h / src_h)
    width = src_w * scale
    height = src_h * scale
    return (box_w - width) / 2, (box_h - height) / 2, width, height

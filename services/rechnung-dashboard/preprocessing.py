"""Photo preprocessing before AI extraction.

Normalizes invoice photos taken with a phone camera:
1. Decode image bytes
2. CLAHE lighting normalization (shadows, uneven flash)
3. Downscale so the long edge fits the model input budget
4. Encode as JPEG

If a step fails, the image from the previous step continues.
PDFs and anything that does not decode as an image are passed through.
"""

import base64
import logging

import cv2
import numpy as np

logger = logging.getLogger(__name__)

# Long edge in pixels; invoices are tall, so keep enough height for line items
MAX_LONG_EDGE = 1600
JPEG_QUALITY = 90


def preprocess(image_bytes: bytes, content_type: str | None = None) -> tuple[bytes, str]:
    """Run the pipeline on raw upload bytes.

    Returns (bytes, mime_type). Non-images come back unchanged.
    """
    if content_type == "application/pdf" or image_bytes[:5] == b"%PDF-":
        return image_bytes, "application/pdf"

    img = _decode(image_bytes)
    if img is None:
        logger.warning("preprocessing: could not decode image, passing through")
        return image_bytes, content_type or "application/octet-stream"

    img = _clahe_normalize(img)
    img = _fit_long_edge(img)
    encoded = _encode(img)
    if encoded is None:
        return image_bytes, content_type or "image/jpeg"
    return encoded, "image/jpeg"


def to_data_uri(content: bytes, mime_type: str) -> str:
    """Encode bytes as a base64 data URI."""
    return f"data:{mime_type};base64,{base64.b64encode(content).decode()}"


def _decode(image_bytes: bytes) -> np.ndarray | None:
    """Decode raw bytes into an OpenCV BGR array."""
    arr = np.frombuffer(image_bytes, dtype=np.uint8)
    if arr.size == 0:
        return None
    return cv2.imdecode(arr, cv2.IMREAD_COLOR)


def _clahe_normalize(img: np.ndarray) -> np.ndarray:
    """Apply CLAHE to the L channel in LAB color space."""
    try:
        lab = cv2.cvtColor(img, cv2.COLOR_BGR2LAB)
        l_channel, a_channel, b_channel = cv2.split(lab)
        l_channel = cv2.createCLAHE(clipLimit=2.0, tileGridSize=(8, 8)).apply(l_channel)
        return cv2.cvtColor(cv2.merge([l_channel, a_channel, b_channel]), cv2.COLOR_LAB2BGR)
    except cv2.error as e:
        logger.warning("preprocessing: CLAHE failed: %s", e)
        return img


def _fit_long_edge(img: np.ndarray) -> np.ndarray:
    """Downscale preserving aspect ratio; never upscale."""
    h, w = img.shape[:2]
    long_edge = max(h, w)
    if long_edge <= MAX_LONG_EDGE:
        return img

    scale = MAX_LONG_EDGE / long_edge
    size = (max(1, round(w * scale)), max(1, round(h * scale)))
    try:
        return cv2.resize(img, size, interpolation=cv2.INTER_AREA)
    except cv2.error as e:
        logger.warning("preprocessing: resize failed: %s", e)
        return img


def _encode(img: np.ndarray) -> bytes | None:
    try:
        success, buf = cv2.imencode(".jpg", img, [cv2.IMWRITE_JPEG_QUALITY, JPEG_QUALITY])
        if success:
            return buf.tobytes()
    except cv2.error as e:
        logger.warning("preprocessing: JPEG encode failed: %s", e)
    return None

"""
Left-margin detection for scanned answer pages.

A ruled answer sheet has a vertical line separating the margin strip
(question numbers, teacher marks) from the answer area. The line shows up as
the strongest column of vertical edges in the left half of the page:

    gray -> 5x5 gaussian -> sobel x -> |.| scaled to 0..255 -> otsu
         -> vertical close -> column sums over the left half -> argmax

The column index of the first maximum becomes the crop width and the page is
cut to columns [0, crop_width). Everything here is deterministic.
"""
import logging

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class MarginCrop:
    def __init__(self, crop, crop_width, margin_column_sum):
        self.crop = crop
        self.crop_width = crop_width
        self.margin_column_sum = margin_column_sum

    @property
    def found(self):
        """A zero-width crop means no reliable margin line was found."""
        return self.crop_width > 0

    def to_dict(self):
        return {
            'crop_width': self.crop_width,
            'margin_column_sum': self.margin_column_sum,
            'margin_found': self.found
        }


def decode_image(data):
    """Decode JPEG/PNG bytes; None for empty or unreadable input."""
    if not data:
        return None
    buf = np.frombuffer(data, dtype=np.uint8)
    image = cv2.imdecode(buf, cv2.IMREAD_COLOR)
    if image is None or image.size == 0:
        return None
    return image


def to_grayscale(image):
    if image.ndim == 2:
        return image
    channels = image.shape[2]
    if channels == 1:
        return image[:, :, 0]
    if channels == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def edge_mask(gray):
    """Binary mask of vertical edges, closed so broken rules join up."""
    h = gray.shape[0]
    blur = cv2.GaussianBlur(gray, (5, 5), 0)
    sobel = cv2.Sobel(blur, cv2.CV_64F, 1, 0, ksize=3)
    magnitude = np.abs(sobel)

    max_val = float(magnitude.max()) if magnitude.size else 0.0
    divisor = max_val if max_val != 0 else 1.0
    scaled = np.round(magnitude / divisor * 255).astype(np.uint8)

    _, binary = cv2.threshold(scaled, 0, 255, cv2.THRESH_BINARY | cv2.THRESH_OTSU)

    kernel_h = max(5, h // 50)
    kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (3, kernel_h))
    return cv2.morphologyEx(binary, cv2.MORPH_CLOSE, kernel)


def column_profile(mask):
    """Per-column foreground sums over the left half of the mask."""
    half = mask.shape[1] // 2
    return mask[:, :half].sum(axis=0, dtype=np.int64)


def segment_margin(image):
    """Find the margin split column of a decoded image and crop to it."""
    if image is None or image.size == 0:
        raise ValueError("Cannot segment an empty image")

    mask = edge_mask(to_grayscale(image))
    sums = column_profile(mask)
    if sums.size == 0:
        crop_width, margin_sum = 0, 0
    else:
        # argmax returns the first index of the maximum
        crop_width = int(np.argmax(sums))
        margin_sum = int(sums[crop_width])

    return MarginCrop(image[:, :crop_width], crop_width, margin_sum)


def segment_margin_bytes(data):
    """Decode and segment; None when the bytes are not an image."""
    image = decode_image(data)
    if image is None:
        return None
    return segment_margin(image)


def encode_png(image):
    if image is None or image.size == 0:
        return None
    ok, buf = cv2.imencode('.png', image)
    return buf.tobytes() if ok else None


def margin_crop_images(files):
    """
    Margin-crop a batch of (filename, bytes) pairs.

    Unreadable or empty files are logged and skipped so one bad scan does
    not sink the batch. Returns {filename: MarginCrop}.
    """
    results = {}
    for filename, data in files:
        image = decode_image(data)
        if image is None:
            logger.warning("Skipping unreadable image %s", filename)
            continue
        results[filename] = segment_margin(image)
    return results

"""
Best-effort enrichment of uploaded images: exposure metadata from EXIF and
a small dominant color palette. Both return an empty result instead of
raising so a bad or unusual file never blocks an upload.
"""
import io
import colorsys
from collections import Counter
from typing import Any, Dict, List, Optional
import logging
from PIL import Image, ExifTags, UnidentifiedImageError
from pydantic import ValidationError

from schemas.photo import ExposureSettings, MAX_CAMERA_LENGTH, MAX_EXIF_TEXT_LENGTH

logger = logging.getLogger(__name__)

SAMPLE_SIZE = 50
SAMPLE_STEP = 4
COLOR_BUCKET = 32
CANDIDATE_COLORS = 5

def _as_float(value) -> Optional[float]:
    if isinstance(value, tuple):
        value = value[0] if value else None
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError, ZeroDivisionError):
        return None

def _clean_text(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode('utf-8', errors='ignore')
    value = str(value).strip('\x00 ').strip()
    return value[:MAX_EXIF_TEXT_LENGTH].rstrip() or None

def format_shutter_speed(seconds: float) -> str:
    if seconds >= 1:
        return f"{seconds:g}s"
    return f"1/{round(1 / seconds)}"

def extract_exposure(data: bytes) -> Optional[Dict[str, Any]]:
    """
    Read iso, aperture, shutter_speed, focal_length, make and model.

    Returns:
        Dict with the fields that are present, or None when the file has no
        usable EXIF or cannot be parsed
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            exif = img.getexif()
            if not exif:
                return None
            details = exif.get_ifd(ExifTags.IFD.Exif)
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        logger.debug(f"No EXIF data: {e}")
        return None

    def tag(name):
        key = getattr(ExifTags.Base, name)
        return details.get(key, exif.get(key))

    exposure: Dict[str, Any] = {}

    iso = _as_float(tag('ISOSpeedRatings'))
    if iso and iso >= 1:
        exposure['iso'] = int(iso)

    f_number = _as_float(tag('FNumber'))
    if f_number:
        exposure['aperture'] = f"f/{f_number:g}"

    exposure_time = _as_float(tag('ExposureTime'))
    if exposure_time and exposure_time > 0:
        exposure['shutter_speed'] = format_shutter_speed(exposure_time)

    focal_length = _as_float(tag('FocalLength'))
    if focal_length:
        exposure['focal_length'] = f"{focal_length:g}mm"

    make = _clean_text(exif.get(ExifTags.Base.Make))
    model = _clean_text(exif.get(ExifTags.Base.Model))
    if make:
        exposure['make'] = make
    if model:
        exposure['model'] = model

    if not exposure:
        return None
    try:
        return ExposureSettings(**exposure).model_dump(exclude_none=True)
    except ValidationError as e:
        logger.warning(f"Discarding EXIF that does not fit the exposure schema: {e}")
        return None

def camera_from_exposure(exposure: Optional[Dict[str, Any]]) -> Optional[str]:
    if not exposure or not exposure.get('make') or not exposure.get('model'):
        return None
    return f"{exposure['make']} {exposure['model']}"[:MAX_CAMERA_LENGTH]

def _to_hsl_string(rgb) -> Optional[str]:
    r, g, b = (min(c, 255) / 255 for c in rgb)
    h, l, s = colorsys.rgb_to_hls(r, g, b)
    # drop near-black and near-white
    if not 0.1 < l < 0.9:
        return None
    return f"hsl({round(h * 360)}, {round(s * 100)}%, {round(l * 100)}%)"

def extract_dominant_colors(data: bytes, limit: int = 3) -> List[str]:
    """Most frequent quantized colors of a downsampled copy, as CSS ``hsl()`` strings."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            sample = img.convert('RGBA').resize((SAMPLE_SIZE, SAMPLE_SIZE))
            raw = sample.tobytes()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        logger.debug(f"Color extraction skipped: {e}")
        return []

    buckets = Counter()
    for i in range(0, len(raw), 4 * SAMPLE_STEP):
        r, g, b, a = raw[i:i + 4]
        if a < 128:
            continue
        buckets[tuple(round(c / COLOR_BUCKET) * COLOR_BUCKET for c in (r, g, b))] += 1

    colors = []
    for rgb, _ in buckets.most_common(CANDIDATE_COLORS):
        hsl = _to_hsl_string(rgb)
        if hsl:
            colors.append(hsl)
    return colors[:limit]

"""
EXIF exposure extraction and dominant color sampling.
"""
import io
from PIL import Image

from services.image_analysis import (
    camera_from_exposure, extract_dominant_colors, extract_exposure, format_shutter_speed
)


class TestExposureExtraction:

    def test_reads_camera_exif(self, utils):
        data = utils.image_bytes("JPEG", exif=utils.camera_exif())

        exposure = extract_exposure(data)

        assert exposure == {
            "iso": 400,
            "aperture": "f/2.8",
            "shutter_speed": "1/250",
            "focal_length": "50mm",
            "make": "Fujifilm",
            "model": "X-T5",
        }
        assert camera_from_exposure(exposure) == "Fujifilm X-T5"

    def test_long_camera_text_is_trimmed(self, utils):
        data = utils.image_bytes("JPEG", exif=utils.camera_exif(make="Acme " * 40, model="M" * 150))

        exposure = extract_exposure(data)

        assert exposure["model"] == "M" * 100
        assert len(exposure["make"]) <= 100
        assert exposure["iso"] == 400
        assert len(camera_from_exposure(exposure)) <= 200

    def test_no_exif(self, utils):
        assert extract_exposure(utils.image_bytes("PNG")) is None

    def test_garbage_bytes(self):
        assert extract_exposure(b"definitely not an image") is None

    def test_shutter_speed_format(self):
        assert format_shutter_speed(0.004) == "1/250"
        assert format_shutter_speed(2) == "2s"
        assert format_shutter_speed(1.5) == "1.5s"

    def test_camera_needs_make_and_model(self):
        assert camera_from_exposure({"make": "Leica"}) is None
        assert camera_from_exposure(None) is None

class TestDominantColors:

    def test_solid_color(self, utils):
        colors = extract_dominant_colors(utils.image_bytes("PNG", color=(200, 80, 40)))
        assert len(colors) == 1
        assert colors[0].startswith("hsl(")

    def test_near_black_and_white_dropped(self, utils):
        assert extract_dominant_colors(utils.image_bytes("PNG", color=(0, 0, 0))) == []
        assert extract_dominant_colors(utils.image_bytes("PNG", color=(255, 255, 255))) == []

    def test_transparent_pixels_ignored(self):
        buffer = io.BytesIO()
        Image.new("RGBA", (10, 10), (200, 80, 40, 0)).save(buffer, format="PNG")
        assert extract_dominant_colors(buffer.getvalue()) == []

    def test_limit(self, utils):
        img = Image.new("RGB", (40, 40))
        palette = [(200, 40, 40), (40, 200, 40), (40, 40, 200), (200, 200, 40)]
        for index, color in enumerate(palette):
            for x in range(index * 10, index * 10 + 10):
                for y in range(40):
                    img.putpixel((x, y), color)
        buffer = io.BytesIO()
        img.save(buffer, format="PNG")

        assert len(extract_dominant_colors(buffer.getvalue(), limit=2)) == 2

    def test_unreadable(self):
        assert extract_dominant_colors(b"\x00\x01") == []

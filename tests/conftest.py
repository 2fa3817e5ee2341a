from io import BytesIO
from PIL import Image, ImageDraw
import pytest


def make_cover(fmt='JPEG', size=(120, 120)):
    # four flat quadrants keep the dominant colors well separated
    img = Image.new('RGB', size, color=(200, 30, 40))
    draw = ImageDraw.Draw(img)
    w, h = size
    draw.rectangle([w // 2, 0, w, h // 2], fill=(20, 160, 60))
    draw.rectangle([0, h // 2, w // 2, h], fill=(30, 60, 190))
    draw.rectangle([w // 2, h // 2, w, h], fill=(230, 200, 20))
    buf = BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def cover_bytes():
    return make_cover()

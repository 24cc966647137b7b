# Utils for I/O and image panel generation
# Purpose: helper functions to read images into RasterBuffers, list input
# folders, write outputs and build multi-panel previews of a pipeline run.
#
# Notes:
# - Uses Pillow for image handling and drawing.
# - Panels accept any number of equally sized tiles, each with a title.
# - Designed for use by the batch runner (batch.py).
from __future__ import annotations

import pathlib
from typing import Sequence, Tuple

from PIL import Image, ImageDraw, ImageFont

from erythema.preproc.raster import RasterBuffer

IMG_EXTS = (".jpg", ".jpeg", ".png", ".bmp", ".tif", ".tiff")


def list_images(root: str | pathlib.Path) -> list[pathlib.Path]:
    """
    Returns every image file under root (recursive), sorted by path.
    """
    root = pathlib.Path(root)
    if not root.exists():
        return []
    return sorted(f for f in root.rglob("*") if f.is_file() and f.suffix.lower() in IMG_EXTS)


def ensure_dir(p: str | pathlib.Path) -> pathlib.Path:
    p = pathlib.Path(p)
    p.mkdir(parents=True, exist_ok=True)
    return p


def imread_raster(path: str | pathlib.Path, max_side: int | None = None) -> RasterBuffer:
    """Decode an image file to an RGBA RasterBuffer, optionally downscaled to max_side."""
    with Image.open(path) as img:
        img = img.convert("RGBA")
        if max_side and max(img.size) > max_side:
            img.thumbnail((max_side, max_side))
        return RasterBuffer.from_pil(img)


def save_raster(buffer: RasterBuffer, path: str | pathlib.Path) -> pathlib.Path:
    path = pathlib.Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    buffer.to_pil().save(path)
    return path


def pil_textsize(
    draw: ImageDraw.ImageDraw, text: str, font: ImageFont.ImageFont
) -> Tuple[int, int]:
    # textsize was removed from Pillow; measure with textbbox
    bbox = draw.textbbox((0, 0), text, font=font)
    return (bbox[2] - bbox[0], bbox[3] - bbox[1])


def panel_row(
    images: Sequence[Image.Image],
    titles: Sequence[str],
    pad=8,
    bg=(18, 18, 18),
    fg=(240, 240, 240),
) -> Image.Image:
    """Side-by-side panels with a centred title above each tile."""
    assert images and len(images) == len(titles)
    w, h = images[0].size
    assert all(im.size == (w, h) for im in images)
    n = len(images)
    font = ImageFont.load_default()
    canvas = Image.new("RGB", (w * n + pad * (n + 1), h + pad * 3 + 14), bg)
    draw = ImageDraw.Draw(canvas)
    for i, t in enumerate(titles):
        tw, th = pil_textsize(draw, t, font)
        x = pad + i * (w + pad) + (w - tw) // 2
        draw.text((x, pad), t, fill=fg, font=font)
    y = pad * 2 + 14
    for i, im in enumerate(images):
        canvas.paste(im.convert("RGB"), (pad + i * (w + pad), y))
    return canvas

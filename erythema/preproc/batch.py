# Batch runner for the erythema pipeline
# Pipeline per image:
#   0) Decode with Pillow into an RGBA RasterBuffer
#   1) run_pipeline() with the selected techniques and the YAML config
#   2) Export PNGs: output, Lab-erythema map, fused heatmap, suppression mask
#   3) Collage (original | output | lab | heatmap | mask) for the first few images
#
# Outputs:
#   - PNGs: <out_root>/<stem>__{output,lab,heatmap,mask}.png
#   - Previews: <out_root>/preview/<stem>__collage.png
#   - Metadata: <out_root>/run_meta.json with info per image

from __future__ import annotations

import argparse
import json
import math
from dataclasses import replace
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError
from tqdm import tqdm

from erythema.preproc.pipeline import PipelineResult, Technique, run_pipeline
from erythema.preproc.raster import RasterBuffer
from erythema.preproc.utils_io import ensure_dir, imread_raster, list_images, panel_row, save_raster
from erythema.utils.config import PipelineConfig, load_config

DEFAULT_CONFIG = "config/base.yaml"


def parse_techniques(value: str) -> list[str]:
    """Comma-separated identifiers -> list; empty selections are rejected here."""
    items = [v.strip() for v in value.split(",") if v.strip()]
    if not items:
        raise argparse.ArgumentTypeError("select at least one technique")
    return items


def mask_overlay(original: RasterBuffer, result: PipelineResult, alpha: float = 0.45) -> Image.Image:
    """Original blended with the suppression mask coloured black -> yellow."""
    base = original.to_pil().convert("RGB")
    if result.mask is None:
        return base
    mL = result.mask_image.to_pil().convert("L")
    mRGB = ImageOps.colorize(mL, black="black", white="yellow").convert("RGB")
    return Image.blend(base, mRGB, alpha=alpha)


def process_one(path_img: Path, selection: list[str], cfg: PipelineConfig, out_root: Path,
                max_side: int | None = None) -> tuple[dict, PipelineResult, RasterBuffer]:
    """
    Run the pipeline on one image and write its PNG outputs.
    Args:
        path_img: Path to input image.
        selection: technique identifiers, in the user's order.
        cfg: pipeline configuration.
        out_root: output folder.
        max_side: optional downscale limit before processing.
    Returns:
        (metadata dict, PipelineResult, input RasterBuffer)
    """
    buf = imread_raster(path_img, max_side=max_side)
    result = run_pipeline(buf, selection, cfg)

    stem = path_img.stem
    outputs = {"output": save_raster(result.output, out_root / f"{stem}__output.png")}
    if result.lab_map is not None:
        outputs["lab"] = save_raster(result.lab_map, out_root / f"{stem}__lab.png")
    if result.heatmap is not None:
        outputs["heatmap"] = save_raster(result.heatmap, out_root / f"{stem}__heatmap.png")
    if result.mask_image is not None:
        outputs["mask"] = save_raster(result.mask_image, out_root / f"{stem}__mask.png")

    meta = {
        "path": str(path_img),
        "size": [buf.width, buf.height],
        "stages": result.stages,
        "outputs": {k: str(v) for k, v in outputs.items()},
        "hair_coverage": float(result.hair_coverage),
        "ita": None if math.isnan(result.ita) else round(result.ita, 2),
        "skin_type": result.skin_type,
    }
    return meta, result, buf


def collage(buf: RasterBuffer, result: PipelineResult) -> Image.Image:
    tiles = [buf.to_pil(), result.output.to_pil()]
    titles = ["Original", "Output"]
    if result.lab_map is not None:
        tiles += [result.lab_map.to_pil(), result.heatmap.to_pil()]
        titles += ["Lab erythema", "Fused heatmap"]
    if result.mask is not None:
        tiles.append(mask_overlay(buf, result))
        titles.append("Hair mask (overlay)")
    return panel_row(tiles, titles)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Run the erythema pipeline over a folder of images.")
    ap.add_argument("--config", default=DEFAULT_CONFIG)
    ap.add_argument("--img-root", default=None, help="Overrides paths.img_root")
    ap.add_argument("--out-root", default=None, help="Overrides paths.out_root")
    ap.add_argument("--techniques", required=True, type=parse_techniques,
                    help="Comma list, e.g. a-star,erythema-index,contrast-boost. "
                         f"Known: {', '.join(t.value for t in Technique)}")
    ap.add_argument("--derm", action="store_true", help="Enable derm (enhanced) mode")
    ap.add_argument("--hair", action="store_true", help="Force hair suppression")
    ap.add_argument("--max-side", type=int, default=None)
    ap.add_argument("--max-previews", type=int, default=5)
    return ap


def main(argv=None):
    args = build_parser().parse_args(argv)

    cfg = load_config(args.config)
    pipe_cfg: PipelineConfig = cfg["pipeline"]
    if args.derm:
        pipe_cfg = replace(pipe_cfg, derm_mode=True)
    if args.hair:
        pipe_cfg = replace(pipe_cfg, hair_suppression=True)

    img_root = Path(args.img_root or cfg["paths"]["img_root"])
    out_root = ensure_dir(args.out_root or cfg["paths"]["out_root"])
    prev_root = ensure_dir(out_root / "preview")

    unknown = [t for t in args.techniques if Technique.parse(t) is None]
    if unknown:
        print(f"[WARN] unknown techniques will be skipped: {unknown}")

    all_imgs = list_images(img_root)
    if not all_imgs:
        print(f"[WARN] no images under {img_root}")
        return 0

    meta = []
    for p in tqdm(all_imgs, desc="erythema"):
        try:
            info, result, buf = process_one(p, args.techniques, pipe_cfg, out_root, args.max_side)
        except (UnidentifiedImageError, OSError) as e:
            print(f"[WARN] skipping {p}: {e}")
            continue

        if len(meta) < args.max_previews:
            collage(buf, result).save(prev_root / f"{p.stem}__collage.png")
        meta.append(info)

    with open(out_root / "run_meta.json", "w", encoding="utf-8") as f:
        json.dump(meta, f, indent=2, ensure_ascii=False)

    print(f"[OK] {len(meta)} image(s) processed, PNGs at: {out_root}")
    print(f"[OK] Collages at: {prev_root}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

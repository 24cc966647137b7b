# Erythema analysis pipeline (EARLY -> MAIN -> LATE)
# Pipeline:
#   EARLY) Hair/occlusion suppression (selected, hair_suppression or derm mode)
#          Melanin compensation (selected, or forced last in derm mode)
#   MAIN)  Every other selected technique, in selection order
#   LATE)  Contrast stretch (if selected)
#   +)     Derm mode: closing mild contrast pass (factor 1.1)
#
# Outputs (PipelineResult):
#   - output:  final RGBA buffer
#   - lab_map: Lab-erythema grayscale (from the buffer the a* step consumed,
#              or from the pre-MAIN buffer when a* was not selected)
#   - heatmap: fused Lab-erythema + hemoglobin heatmap from the same buffer
#   - mask:    suppression mask from EARLY (None if hair suppression did not run)
#
# Notes:
#   - Unknown technique identifiers are ignored (logged), never raised.
#   - Every run starts from scratch; nothing is cached between calls.

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

import numpy as np

from erythema.preproc.clahe import clahe_lightness
from erythema.preproc.colors import rgb_image_to_lab
from erythema.preproc.fusion import fused_heatmap
from erythema.preproc.hair import mask_to_rgb, suppress_artifacts
from erythema.preproc.raster import RasterBuffer, check_mask
from erythema.techniques.contrast import contrast_stretch
from erythema.techniques.erythema_index import erythema_index_map
from erythema.techniques.ita import ita_enhance, skin_tone_summary
from erythema.techniques.lab_erythema import lab_erythema_gray
from erythema.techniques.melanin import melanin_compensate
from erythema.techniques.normalize import gray_to_rgb
from erythema.techniques.spectral_ratio import spectral_ratio_map
from erythema.utils.config import PipelineConfig

LOGGER = logging.getLogger(__name__)

DERM_CONTRAST_STAGE = "derm-contrast"


class Technique(str, Enum):
    A_STAR = "a-star"
    ERYTHEMA_INDEX = "erythema-index"
    ITA = "ita"
    RGB_RATIO = "rgb-ratio"
    MELANIN_FILTER = "melanin-filter"
    CONTRAST_BOOST = "contrast-boost"
    HAIR_REDUCTION = "hair-reduction"

    @classmethod
    def parse(cls, value) -> Optional["Technique"]:
        """Identifier or member -> Technique; None when unrecognized."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class Phase(Enum):
    EARLY = 0
    MAIN = 1
    LATE = 2


PHASES: Dict[Technique, Phase] = {
    Technique.HAIR_REDUCTION: Phase.EARLY,
    Technique.MELANIN_FILTER: Phase.EARLY,
    Technique.A_STAR: Phase.MAIN,
    Technique.ERYTHEMA_INDEX: Phase.MAIN,
    Technique.ITA: Phase.MAIN,
    Technique.RGB_RATIO: Phase.MAIN,
    Technique.CONTRAST_BOOST: Phase.LATE,
}


@dataclass
class PipelineResult:
    """
    Everything one run produced. Owned by the caller; the pipeline keeps no copy.
    Attributes:
        - output: final RGBA buffer.
        - lab_map: Lab-erythema grayscale buffer (None if supplementary maps are off
          and a* was not selected).
        - heatmap: fused heatmap buffer (same availability as lab_map).
        - mask: bool (H,W) suppression mask, or None.
        - stages: identifiers of the steps applied, in order.
        - hair_coverage: fraction of pixels suppressed.
        - ita / skin_type: median ITA of the pre-MAIN buffer and its category.
    """

    output: RasterBuffer
    lab_map: Optional[RasterBuffer] = None
    heatmap: Optional[RasterBuffer] = None
    mask: Optional[np.ndarray] = None
    stages: List[str] = field(default_factory=list)
    hair_coverage: float = 0.0
    ita: float = math.nan
    skin_type: str = "Unknown"

    @property
    def mask_image(self) -> Optional[RasterBuffer]:
        """Black/white rendering of the mask for export."""
        if self.mask is None:
            return None
        return RasterBuffer.from_rgb(mask_to_rgb(self.mask))


def plan_stages(selection: Iterable, config: Optional[PipelineConfig] = None) -> List[Technique]:
    """
    Re-sequence a technique selection into EARLY, MAIN and LATE groups.
    Within MAIN and LATE the selection order is kept; EARLY is always hair
    suppression first and melanin compensation last. Duplicates keep their first
    position; unknown identifiers are dropped.
    """
    config = config or PipelineConfig()
    chosen: List[Technique] = []
    for item in selection:
        technique = Technique.parse(item)
        if technique is None:
            LOGGER.warning("[WARN] unknown technique %r ignored", item)
            continue
        if technique not in chosen:
            chosen.append(technique)

    early: List[Technique] = []
    if Technique.HAIR_REDUCTION in chosen or config.hair_suppression or config.derm_mode:
        early.append(Technique.HAIR_REDUCTION)
    if Technique.MELANIN_FILTER in chosen or config.derm_mode:
        early.append(Technique.MELANIN_FILTER)
    main = [t for t in chosen if PHASES[t] is Phase.MAIN]
    late = [t for t in chosen if PHASES[t] is Phase.LATE]
    return early + main + late


def lab_gray_for(rgb: np.ndarray, mask: Optional[np.ndarray], config: PipelineConfig) -> np.ndarray:
    """Lab-erythema map on CLAHE-equalized lightness (8x8 tiles in derm mode, 1 tile otherwise)."""
    L = rgb_image_to_lab(rgb)[..., 0]
    grid = config.clahe_grid if config.derm_mode else 1
    L_eq = clahe_lightness(L, grid=grid, clip_limit=config.clahe_clip_limit, mask=mask)
    return lab_erythema_gray(
        rgb,
        mask,
        local=config.derm_mode,
        lightness=L_eq,
        tile_px=config.lmax_tile_px,
    )


def _a_star(rgb, mask, config):
    return gray_to_rgb(lab_gray_for(rgb, mask, config))


def _erythema_index(rgb, mask, config):
    return erythema_index_map(rgb)


def _ita(rgb, mask, config):
    return ita_enhance(rgb)


def _rgb_ratio(rgb, mask, config):
    return spectral_ratio_map(rgb, smooth=config.derm_mode)


def _melanin(rgb, mask, config):
    return melanin_compensate(rgb)


def _contrast(rgb, mask, config):
    return contrast_stretch(rgb, factor=config.contrast_factor)


TECHNIQUES: Dict[Technique, Callable[[np.ndarray, Optional[np.ndarray], PipelineConfig], np.ndarray]] = {
    Technique.A_STAR: _a_star,
    Technique.ERYTHEMA_INDEX: _erythema_index,
    Technique.ITA: _ita,
    Technique.RGB_RATIO: _rgb_ratio,
    Technique.MELANIN_FILTER: _melanin,
    Technique.CONTRAST_BOOST: _contrast,
}


def run_pipeline(
    buffer: RasterBuffer,
    selection: Iterable,
    config: Optional[PipelineConfig] = None,
) -> PipelineResult:
    """
    Run the selected techniques on one image.
    Args:
        - buffer: input RGBA raster.
        - selection: ordered technique identifiers (str or Technique).
        - config: PipelineConfig; defaults to simple mode without hair suppression.
    Returns:
        - PipelineResult with the final buffer and the supplementary maps.
    """
    if not isinstance(buffer, RasterBuffer):
        raise TypeError(f"run_pipeline expects a RasterBuffer, got {type(buffer).__name__}")
    config = config or PipelineConfig()
    stages = plan_stages(selection, config)
    LOGGER.debug("stages: %s", [t.value for t in stages])

    rgb = buffer.rgb
    mask: Optional[np.ndarray] = None
    coverage = 0.0
    applied: List[str] = []

    for technique in [t for t in stages if PHASES[t] is Phase.EARLY]:
        if technique is Technique.HAIR_REDUCTION:
            rgb, mask, coverage = suppress_artifacts(
                rgb,
                percentile=config.dark_percentile,
                iterations=config.inpaint_iterations,
                sigma=config.inpaint_sigma,
            )
            mask = check_mask(mask, rgb.shape[:2])
            LOGGER.debug("hair suppression flagged %.4f of the image", coverage)
        else:
            rgb = TECHNIQUES[technique](rgb, mask, config)
        applied.append(technique.value)

    pre_main = rgb
    lab_source: Optional[np.ndarray] = None
    lab_gray: Optional[np.ndarray] = None

    for technique in [t for t in stages if PHASES[t] is not Phase.EARLY]:
        if technique is Technique.A_STAR:
            lab_source = rgb
            lab_gray = lab_gray_for(rgb, mask, config)
            rgb = gray_to_rgb(lab_gray)
        else:
            rgb = TECHNIQUES[technique](rgb, mask, config)
        applied.append(technique.value)

    if config.derm_mode:
        rgb = contrast_stretch(rgb, factor=config.derm_contrast_factor)
        applied.append(DERM_CONTRAST_STAGE)

    result = PipelineResult(
        output=RasterBuffer.from_rgb(rgb),
        mask=mask,
        stages=applied,
        hair_coverage=coverage,
    )

    if lab_gray is None and config.supplementary_maps:
        lab_source = pre_main
        lab_gray = lab_gray_for(pre_main, mask, config)
    if lab_gray is not None:
        result.lab_map = RasterBuffer.from_rgb(gray_to_rgb(lab_gray))
        result.heatmap = RasterBuffer.from_rgb(fused_heatmap(lab_source, lab_gray, mask))

    result.ita, result.skin_type = skin_tone_summary(pre_main, mask)
    return result

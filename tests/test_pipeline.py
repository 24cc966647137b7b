import math

import numpy as np
import pytest

from conftest import solid
from erythema.preproc.fusion import fused_heatmap
from erythema.preproc.hair import suppress_artifacts
from erythema.preproc.pipeline import (
    DERM_CONTRAST_STAGE,
    Technique,
    lab_gray_for,
    plan_stages,
    run_pipeline,
)
from erythema.preproc.raster import RasterBuffer
from erythema.techniques.contrast import contrast_stretch
from erythema.techniques.melanin import melanin_compensate
from erythema.techniques.normalize import gray_to_rgb
from erythema.utils.config import PipelineConfig

T = Technique


def test_technique_parse():
    assert T.parse("a-star") is T.A_STAR
    assert T.parse(" Hair-Reduction ") is T.HAIR_REDUCTION
    assert T.parse(T.ITA) is T.ITA
    assert T.parse("bogus") is None


def test_plan_stages_regroups_phases():
    selection = ["contrast-boost", "ita", "melanin-filter", "a-star", "hair-reduction"]
    assert plan_stages(selection) == [
        T.HAIR_REDUCTION,
        T.MELANIN_FILTER,
        T.ITA,
        T.A_STAR,
        T.CONTRAST_BOOST,
    ]


def test_plan_stages_keeps_main_order():
    assert plan_stages(["rgb-ratio", "erythema-index"]) == [T.RGB_RATIO, T.ERYTHEMA_INDEX]
    assert plan_stages(["erythema-index", "rgb-ratio"]) == [T.ERYTHEMA_INDEX, T.RGB_RATIO]


def test_plan_stages_derm_mode_forces_early_steps():
    cfg = PipelineConfig(derm_mode=True)
    assert plan_stages(["rgb-ratio"], cfg) == [T.HAIR_REDUCTION, T.MELANIN_FILTER, T.RGB_RATIO]


def test_plan_stages_hair_suppression_flag():
    cfg = PipelineConfig(hair_suppression=True)
    assert plan_stages(["a-star"], cfg) == [T.HAIR_REDUCTION, T.A_STAR]


def test_plan_stages_drops_unknown_and_duplicates(caplog):
    with caplog.at_level("WARNING"):
        assert plan_stages(["bogus", "ita", "ita"]) == [T.ITA]
    assert "bogus" in caplog.text


def test_run_pipeline_rejects_raw_arrays():
    with pytest.raises(TypeError):
        run_pipeline(np.zeros((2, 2, 4), dtype=np.uint8), ["a-star"])


def test_unknown_only_selection_passes_through(red_patch):
    buf = RasterBuffer.from_rgb(red_patch)
    result = run_pipeline(buf, ["bogus"])
    np.testing.assert_array_equal(result.output.pixels, buf.pixels)
    assert result.stages == []
    assert result.mask is None and result.mask_image is None


def test_contrast_only_run_has_supplementary_maps(red_patch):
    result = run_pipeline(RasterBuffer.from_rgb(red_patch), ["contrast-boost"])
    np.testing.assert_array_equal(result.output.rgb, contrast_stretch(red_patch))
    assert np.all(result.output.pixels[..., 3] == 255)
    assert result.lab_map is not None and result.heatmap is not None
    assert result.lab_map.pixels.shape == result.output.pixels.shape
    assert result.stages == ["contrast-boost"]


def test_supplementary_maps_can_be_disabled(red_patch):
    cfg = PipelineConfig(supplementary_maps=False)
    result = run_pipeline(RasterBuffer.from_rgb(red_patch), ["ita"], cfg)
    assert result.lab_map is None and result.heatmap is None


def test_a_star_output_is_the_lab_map(red_patch):
    result = run_pipeline(RasterBuffer.from_rgb(red_patch), ["a-star"])
    np.testing.assert_array_equal(result.output.pixels, result.lab_map.pixels)
    assert result.output.rgb[16, 16, 0] > result.output.rgb[0, 0, 0]


def test_input_buffer_is_not_modified(red_patch):
    buf = RasterBuffer.from_rgb(red_patch)
    before = buf.pixels.copy()
    run_pipeline(buf, ["melanin-filter", "a-star", "contrast-boost"])
    np.testing.assert_array_equal(buf.pixels, before)


def test_hair_suppression_reports_mask(skin_with_hair):
    cfg = PipelineConfig(hair_suppression=True)
    result = run_pipeline(RasterBuffer.from_rgb(skin_with_hair), ["erythema-index"], cfg)
    assert result.stages == ["hair-reduction", "erythema-index"]
    assert result.mask[:, 10].all()
    assert result.hair_coverage == pytest.approx(0.05)
    np.testing.assert_array_equal(result.mask_image.rgb[0, 10], [255, 255, 255])
    np.testing.assert_array_equal(result.mask_image.rgb[0, 0], [0, 0, 0])


def test_derm_mode_adds_closing_contrast(skin_with_hair):
    cfg = PipelineConfig(derm_mode=True)
    result = run_pipeline(RasterBuffer.from_rgb(skin_with_hair), ["a-star"], cfg)
    assert result.stages == ["hair-reduction", "melanin-filter", "a-star", DERM_CONTRAST_STAGE]
    assert result.mask is not None
    assert result.output.width == 20 and result.output.height == 20


def test_skin_tone_summary_is_reported():
    img = solid(4, 4, (250, 220, 200))
    result = run_pipeline(RasterBuffer.from_rgb(img), ["ita"])
    assert result.skin_type == "Very light"
    assert not math.isnan(result.ita)


def test_early_mask_reaches_lab_map_and_heatmap(skin_with_hair):
    cfg = PipelineConfig(hair_suppression=True)
    result = run_pipeline(RasterBuffer.from_rgb(skin_with_hair), ["a-star"], cfg)
    assert result.mask.any()
    assert not result.lab_map.rgb[result.mask].any()
    assert not result.heatmap.rgb[result.mask].any()
    assert not result.output.rgb[result.mask].any()


@pytest.mark.parametrize("selection", [["contrast-boost"], ["ita", "contrast-boost"], ["erythema-index"]])
def test_supplementary_maps_come_from_pre_main_buffer(red_patch, selection):
    cfg = PipelineConfig()
    result = run_pipeline(RasterBuffer.from_rgb(red_patch), selection, cfg)
    expected = gray_to_rgb(lab_gray_for(red_patch, None, cfg))
    np.testing.assert_array_equal(result.lab_map.rgb, expected)
    np.testing.assert_array_equal(
        result.heatmap.rgb, fused_heatmap(red_patch, lab_gray_for(red_patch, None, cfg))
    )


def test_derm_mode_output_is_early_main_then_closing_contrast(red_patch):
    cfg = PipelineConfig(derm_mode=True)
    result = run_pipeline(RasterBuffer.from_rgb(red_patch), ["contrast-boost"], cfg)

    clean, mask, _ = suppress_artifacts(
        red_patch,
        percentile=cfg.dark_percentile,
        iterations=cfg.inpaint_iterations,
        sigma=cfg.inpaint_sigma,
    )
    expected = contrast_stretch(melanin_compensate(clean), factor=cfg.contrast_factor)
    expected = contrast_stretch(expected, factor=cfg.derm_contrast_factor)
    np.testing.assert_array_equal(result.output.rgb, expected)
    np.testing.assert_array_equal(result.mask, mask)


def test_derm_lab_map_uses_local_lmax():
    img = solid(32, 64, (250, 200, 190))
    img[:, 32:] = (150, 100, 90)
    simple = run_pipeline(RasterBuffer.from_rgb(img), ["a-star"], PipelineConfig())
    # the darker right tile is only red relative to the bright left tile
    assert simple.lab_map.rgb[5, 40, 0] > 0
    assert not lab_gray_for(img, None, PipelineConfig(derm_mode=True)).any()

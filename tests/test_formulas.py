import numpy as np
import pytest

from erythema.techniques.formulas import (
    calculate_erythema_index,
    classify_ita,
    compute_ita,
    compute_ita_map,
    hemoglobin_index,
    ita_enhancement,
    lab_erythema_value,
)


def test_erythema_index_is_zero_when_red_equals_green():
    assert calculate_erythema_index(120, 120) == 0.0


def test_erythema_index_uses_linear_light():
    assert calculate_erythema_index(200, 100) == pytest.approx(0.656, abs=0.02)


def test_erythema_index_negative_when_green_dominates():
    assert calculate_erythema_index(80, 160) < 0


def test_erythema_index_vectorized():
    out = calculate_erythema_index(np.array([10, 200]), np.array([10, 100]))
    np.testing.assert_allclose(out, [0.0, calculate_erythema_index(200, 100)])


def test_hemoglobin_index_sign():
    assert hemoglobin_index(200, 80, 80) > 0
    assert hemoglobin_index(80, 200, 200) < 0


def test_ita_matches_published_definition():
    assert compute_ita(70, 18) == pytest.approx(48.0, abs=0.05)


def test_ita_handles_zero_b():
    assert compute_ita(55, 0) == 90.0
    assert compute_ita(50, 0) == 90.0
    assert compute_ita(40, 0) == -90.0


def test_ita_map_matches_scalar():
    L = np.array([70.0, 55.0, 40.0, 30.0])
    b = np.array([18.0, 0.0, 0.0, -12.0])
    expected = [compute_ita(l, bb) for l, bb in zip(L, b)]
    np.testing.assert_allclose(compute_ita_map(L, b), expected)


@pytest.mark.parametrize(
    "ita, label",
    [(60, "Very light"), (45, "Light"), (35, "Intermediate"), (20, "Tan"), (0, "Brown"), (-45, "Dark")],
)
def test_ita_classification_bands(ita, label):
    assert classify_ita(ita) == label


def test_ita_band_boundaries_are_strict():
    assert classify_ita(55) == "Light"
    assert classify_ita(-30) == "Dark"


def test_ita_enhancement_bands():
    assert ita_enhancement(5.0) == 1.8
    assert ita_enhancement(20.0) == 1.4
    assert ita_enhancement(28.0) == 1.0
    np.testing.assert_array_equal(ita_enhancement(np.array([-50.0, 10.0, 60.0])), [1.8, 1.4, 1.0])


def test_lab_erythema_scores_darker_skin_higher():
    assert lab_erythema_value(30, 20, 100) > lab_erythema_value(70, 20, 100)
    assert lab_erythema_value(50, -10, 100) < 0

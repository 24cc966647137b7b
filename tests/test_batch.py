import json

import numpy as np
import pytest
from PIL import Image

from conftest import solid
from erythema.preproc.batch import main, parse_techniques


@pytest.fixture
def workspace(tmp_path):
    img_root = tmp_path / "imgs"
    (img_root / "sub").mkdir(parents=True)
    skin = solid(24, 24, (205, 160, 140))
    skin[:, 12] = (35, 25, 25)
    skin[4:10, 4:10] = (200, 95, 90)
    Image.fromarray(skin).save(img_root / "lesion.png")
    Image.fromarray(solid(16, 16, (190, 140, 120))).save(img_root / "sub" / "plain.jpg")
    (img_root / "broken.png").write_bytes(b"not an image")

    cfg = tmp_path / "cfg.yaml"
    cfg.write_text(
        "pipeline:\n  hairSuppression: false\n"
        f"paths:\n  img_root: {img_root.as_posix()}\n  out_root: {(tmp_path / 'unused').as_posix()}\n",
        encoding="utf-8",
    )
    return tmp_path, cfg


def test_parse_techniques():
    assert parse_techniques("a-star, ita,,") == ["a-star", "ita"]


def test_empty_selection_is_a_usage_error(workspace):
    _, cfg = workspace
    with pytest.raises(SystemExit):
        main(["--config", str(cfg), "--techniques", " , "])


def test_batch_writes_outputs_and_metadata(workspace, capsys):
    tmp_path, cfg = workspace
    out_root = tmp_path / "out"
    rc = main([
        "--config", str(cfg),
        "--out-root", str(out_root),
        "--techniques", "a-star,contrast-boost,bogus",
        "--hair",
        "--max-previews", "1",
    ])
    assert rc == 0

    for kind in ("output", "lab", "heatmap", "mask"):
        assert (out_root / f"lesion__{kind}.png").exists()
    assert (out_root / "plain__output.png").exists()
    assert (out_root / "preview" / "lesion__collage.png").exists()
    assert not (out_root / "preview" / "plain__collage.png").exists()

    meta = json.loads((out_root / "run_meta.json").read_text(encoding="utf-8"))
    assert [m["path"].endswith(("lesion.png", "plain.jpg")) for m in meta] == [True, True]
    lesion = meta[0]
    assert lesion["size"] == [24, 24]
    assert lesion["stages"] == ["hair-reduction", "a-star", "contrast-boost"]
    assert 0.0 < lesion["hair_coverage"] < 0.5

    out = capsys.readouterr().out
    assert "[WARN] unknown techniques" in out
    assert "broken.png" in out
    assert "[OK] 2 image(s) processed" in out

    saved = np.asarray(Image.open(out_root / "lesion__output.png"))
    assert saved.shape == (24, 24, 4)
    assert np.all(saved[..., 3] == 255)


def test_batch_with_empty_folder(tmp_path, capsys):
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text(
        f"pipeline: {{}}\npaths:\n  img_root: {(tmp_path / 'none').as_posix()}\n"
        f"  out_root: {(tmp_path / 'out').as_posix()}\n",
        encoding="utf-8",
    )
    assert main(["--config", str(cfg), "--techniques", "ita"]) == 0
    assert "no images" in capsys.readouterr().out


def test_unreadable_images_do_not_use_up_previews(workspace):
    tmp_path, cfg = workspace
    out_root = tmp_path / "out"
    main([
        "--config", str(cfg),
        "--out-root", str(out_root),
        "--techniques", "erythema-index",
        "--max-previews", "1",
    ])
    # broken.png sorts first and is skipped
    assert (out_root / "preview" / "lesion__collage.png").exists()
    assert not (out_root / "preview" / "plain__collage.png").exists()

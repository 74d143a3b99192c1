import os

import numpy as np

from voronoi_mosaic.cli import build_parser, main, settings_from_args


def test_parser_defaults_follow_settings():
    args = build_parser().parse_args(["a.png", "b.png"])
    settings = settings_from_args(args)
    assert settings.side == 96
    assert settings.iterations == 160_000
    assert settings.anneal


def test_flags_map_to_settings():
    args = build_parser().parse_args(
        ["a.png", "b.png", "--side", "32", "--no-anneal", "--edge-alpha", "0.5", "--seed", "7"]
    )
    settings = settings_from_args(args)
    assert (settings.side, settings.anneal, settings.edge_alpha, settings.seed) == (32, False, 0.5, 7)


def test_render_and_reuse_permutation(image_files, tmp_path):
    src, tgt = image_files
    out = str(tmp_path / "mosaic.gif")
    png = str(tmp_path / "final.png")
    perm = str(tmp_path / "perm.npy")
    code = main([src, tgt, "--side", "8", "--iterations", "200", "--frames", "3",
                 "--out", out, "--png", png, "--save-permutation", perm])
    assert code == 0
    assert os.path.exists(out) and os.path.exists(png)
    assert np.load(perm).shape == (64,)

    png2 = str(tmp_path / "again.png")
    assert main([src, tgt, "--frames", "2", "--load-permutation", perm, "--png", png2]) == 0
    assert os.path.exists(png2)


def test_bad_arguments_exit_with_error(image_files, tmp_path):
    src, tgt = image_files
    assert main([src, tgt, "--side", "0", "--png", str(tmp_path / "x.png")]) == 2
    assert main([src, tgt, "--side", "1000", "--png", str(tmp_path / "x.png")]) == 2
    assert main([src, str(tmp_path / "missing.png"), "--side", "8"]) == 2


def test_unwritable_outputs_exit_with_error(image_files, tmp_path):
    src, tgt = image_files
    missing = tmp_path / "missing_dir"
    base = [src, tgt, "--side", "8", "--iterations", "50", "--frames", "2"]
    assert main(base + ["--png", str(missing / "final.png")]) == 2
    assert main(base + ["--out", str(missing / "mosaic.gif")]) == 2
    assert main(base + ["--save-permutation", str(missing / "perm.npy")]) == 2
    assert not missing.exists()

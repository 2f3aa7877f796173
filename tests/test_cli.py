"""
test_cli.py
-----------
Command-line front end and logging setup.
"""

import json
import logging

import numpy as np
import pytest

from field_plant_counter import load_image, save_image
from field_plant_counter.scripts.cli import main
from field_plant_counter.scripts.logging_utils import configure_logging

pytestmark = pytest.mark.usefixtures("reset_package_logger")


@pytest.fixture
def field_png(tmp_path, demo_field):
    image, plants = demo_field
    return save_image(tmp_path / "field.png", image), len(plants)


def test_count_prints_raw_count(field_png, capsys):
    path, n = field_png
    assert main(["count", str(path), "--threshold", "150", "--distance", "3"]) == 0
    assert capsys.readouterr().out.strip() == str(n)


def test_clusters_writes_image(field_png, tmp_path, capsys):
    path, n = field_png
    out = tmp_path / "clusters.png"
    assert main(["clusters", str(path), str(out), "--threshold", "150", "--seed", "3"]) == 0
    assert capsys.readouterr().out.strip() == str(n)
    assert load_image(out).shape == load_image(path).shape


def test_classify_writes_binary(field_png, tmp_path):
    path, _ = field_png
    out = tmp_path / "binary.png"
    assert main(["classify", str(path), str(out), "--threshold", "150"]) == 0
    assert set(np.unique(load_image(out)).tolist()) == {0, 255}


def test_threshold_and_histogram(field_png, capsys):
    path, _ = field_png
    assert main(["threshold", str(path), "--strategy", "otsu"]) == 0
    assert capsys.readouterr().out.strip() == "127"
    assert main(["histogram", str(path)]) == 0
    lines = capsys.readouterr().out.strip().splitlines()
    assert len(lines) == 256
    assert sum(int(line.split("\t")[1]) for line in lines) == 120 * 80


def test_config_file_is_used(field_png, tmp_path, capsys):
    path, n = field_png
    cfg = tmp_path / "cfg.json"
    cfg.write_text(json.dumps({"threshold": 150, "distance": 3}))
    assert main(["count", str(path), "--config", str(cfg)]) == 0
    assert capsys.readouterr().out.strip() == str(n)


def test_detect_weed(tmp_path, weedy_field, reference_samples):
    image, truth = weedy_field
    crop, weed = reference_samples
    paths = [save_image(tmp_path / f"{name}.png", img)
             for name, img in (("target", image), ("crop", crop), ("weed", weed))]
    out = tmp_path / "highlighted.png"
    assert main(["detect-weed", *map(str, paths), str(out)]) == 0
    assert not load_image(out)[truth].any()


def test_batch(field_png, tmp_path, capsys):
    path, n = field_png
    out_dir = tmp_path / "batch"
    assert main(["batch", str(path), str(path), "--threshold", "150", "--output-dir", str(out_dir)]) == 0
    assert len(capsys.readouterr().out.strip().splitlines()) == 2
    assert (out_dir / "counts.csv").exists()


def test_errors_return_exit_code_one(tmp_path):
    assert main(["count", str(tmp_path / "missing.png")]) == 1
    cfg = tmp_path / "bad.json"
    cfg.write_text(json.dumps({"strategy": "nope"}))
    assert main(["count", str(tmp_path / "missing.png"), "--config", str(cfg)]) == 1


def test_configure_logging_writes_file(tmp_path):
    log_path = configure_logging(level=logging.DEBUG, log_dir=tmp_path / "logs")
    logging.getLogger("field_plant_counter.test").info("hello")
    for h in logging.getLogger("field_plant_counter").handlers:
        h.flush()
    assert log_path.exists()
    assert "hello" in log_path.read_text()


def test_configure_logging_console_only():
    assert configure_logging() is None
    assert len(logging.getLogger("field_plant_counter").handlers) == 1

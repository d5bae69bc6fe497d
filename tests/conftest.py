import numpy as np
import pytest

from facerec import config
from facerec.backend import set_backend
from facerec.image import Image


@pytest.fixture(autouse=True)
def cpu_backend(monkeypatch):
    """Every test runs on the CPU backend, quietly, with numeric checks on."""
    monkeypatch.setattr(config, "VERBOSE", False)
    monkeypatch.setattr(config, "CHECK_NUMERICS", True)
    set_backend("cpu")
    yield


@pytest.fixture
def make_image():
    """make_image(path, array) writes an 8-bit image and returns the path."""
    return write_image


def write_image(path, array):
    Image.from_array(np.asarray(array, dtype=np.uint8)).write(str(path))
    return str(path)


def write_uniform(path, value, size=4):
    return write_image(path, np.full((size, size), value, dtype=np.uint8))


@pytest.fixture
def uniform_faces(tmp_path):
    """
    3 classes × 2 uniform 4×4 grayscale images.

    Returns:
        (train_dir, test_dir)
    """
    train_dir = tmp_path / "train"
    test_dir = tmp_path / "test"
    train_dir.mkdir()
    test_dir.mkdir()
    for cls, value in (("a", 10), ("b", 120), ("c", 240)):
        for idx in (1, 2):
            write_uniform(train_dir / f"{cls}_{idx}.pgm", value)
            write_uniform(test_dir / f"{cls}_{idx}.pgm", value)
    return str(train_dir), str(test_dir)


@pytest.fixture
def noisy_faces(tmp_path):
    """
    4 classes × 4 noisy 8×8 images around a per-class template.

    Returns:
        (train_dir, test_dir)
    """
    rng = np.random.RandomState(0)
    train_dir = tmp_path / "train_noisy"
    test_dir = tmp_path / "test_noisy"
    train_dir.mkdir()
    test_dir.mkdir()
    for c in range(4):
        template = rng.randint(30, 220, size=(8, 8))
        for idx in range(1, 6):
            noise = rng.randint(-10, 11, size=(8, 8))
            face = np.clip(template + noise, 0, 255)
            target = train_dir if idx <= 4 else test_dir
            write_image(target / f"s{c}_{idx}.pgm", face)
    return str(train_dir), str(test_dir)

import os

import numpy as np
import pytest

from facerec.data_loader import (
    ImageEntry, get_class_name, get_directory, get_directory_rec,
    get_image_matrix, is_same_class, rem_base_dir,
)
from facerec.image import Image, image_read


def test_filename_convention():
    assert rem_base_dir("/data/faces/s01_3.pgm") == "s01_3.pgm"
    assert get_class_name("/data/faces/s01_3.pgm") == "s01"
    assert get_class_name("john_doe_1.png") == "john"
    assert is_same_class("a/s01_1.pgm", "b/s01_7.pgm")
    assert not is_same_class("a/s01_1.pgm", "a/s02_1.pgm")


def test_get_directory_sorted_and_filtered(tmp_path, make_image):
    (tmp_path / "sub").mkdir()
    make_image(tmp_path / "b_1.pgm", np.zeros((2, 2)))
    make_image(tmp_path / "a_1.png", np.zeros((2, 2)))
    make_image(tmp_path / "sub" / "c_1.pgm", np.zeros((2, 2)))
    (tmp_path / "notes.txt").write_text("not an image")

    names = get_directory(str(tmp_path))
    assert [rem_base_dir(n) for n in names] == ["a_1.png", "b_1.pgm", "c_1.pgm"]


def test_get_directory_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        get_directory(str(tmp_path / "nope"))


def test_get_directory_rec_class_ids(tmp_path, make_image):
    for name in ("s2_1.pgm", "s1_2.pgm", "s1_1.pgm", "s3_1.pgm", "s2_2.pgm"):
        make_image(tmp_path / name, np.zeros((2, 2)))

    entries, num_classes = get_directory_rec(str(tmp_path))
    assert num_classes == 3
    assert [(rem_base_dir(e.name), e.ent_class) for e in entries] == [
        ("s1_1.pgm", 0), ("s1_2.pgm", 0), ("s2_1.pgm", 1), ("s2_2.pgm", 1), ("s3_1.pgm", 2),
    ]


def test_get_image_matrix(tmp_path, make_image):
    a = make_image(tmp_path / "a_1.pgm", [[1, 2], [3, 4]])
    b = make_image(tmp_path / "b_1.pgm", [[5, 6], [7, 8]])

    X = get_image_matrix([ImageEntry(a, 0), ImageEntry(b, 1)], verbose=False)
    assert X.shape == (4, 2)
    assert np.array_equal(X.to_numpy(), [[1, 5], [2, 6], [3, 7], [4, 8]])


def test_get_image_matrix_size_mismatch(tmp_path, make_image):
    a = make_image(tmp_path / "a_1.pgm", np.zeros((2, 2)))
    b = make_image(tmp_path / "b_1.pgm", np.zeros((3, 3)))
    with pytest.raises(ValueError):
        get_image_matrix([a, b], verbose=False)


def test_get_image_matrix_empty():
    with pytest.raises(ValueError):
        get_image_matrix([])


def test_rgb_image_round_trip(tmp_path):
    array = np.arange(2 * 3 * 3, dtype=np.uint8).reshape(2, 3, 3)
    path = os.path.join(str(tmp_path), "rgb_1.ppm")
    Image.from_array(array).write(path)

    image = image_read(path)
    assert (image.channels, image.height, image.width) == (3, 2, 3)
    assert np.array_equal(image.pixels, array.reshape(-1))

import io

import numpy as np
import pytest

from facerec.image import Image
from facerec.matrix import Matrix

MAGIC = [[16, 2, 3, 13],
         [5, 11, 10, 8],
         [9, 7, 6, 12],
         [4, 14, 15, 1]]


def test_constructors():
    assert np.all(Matrix.zeros(2, 3).to_numpy() == 0)
    assert np.all(Matrix.ones(3, 2).to_numpy() == 1)
    assert np.array_equal(Matrix.identity(3).to_numpy(), np.eye(3))
    assert Matrix.initialize(4, 5).shape == (4, 5)


def test_invalid_dimensions():
    with pytest.raises(ValueError):
        Matrix.zeros(0, 3)
    with pytest.raises(ValueError):
        Matrix.initialize(3, -1)


def test_random_is_seeded():
    A = Matrix.random(3, 3, seed=7)
    B = Matrix.random(3, 3, seed=7)
    assert np.array_equal(A.to_numpy(), B.to_numpy())


def test_column_major_storage():
    M = Matrix.from_rows([[1, 2, 3], [4, 5, 6]])
    assert list(M.data) == [1, 4, 2, 5, 3, 6]
    assert M[1, 2] == 6
    M[0, 1] = 9
    assert M.data[2] == 9


def test_copy_is_independent():
    M = Matrix.from_rows(MAGIC)
    C = M.copy()
    C[0, 0] = -1
    assert M[0, 0] == 16
    assert np.array_equal(M.to_numpy(), np.array(MAGIC, dtype=float))


def test_copy_columns():
    M = Matrix.from_rows(MAGIC)
    C = M.copy_columns(1, 3)
    assert C.shape == (4, 2)
    assert np.array_equal(C.to_numpy(), np.array(MAGIC, dtype=float)[:, 1:3])


@pytest.mark.parametrize("begin, end", [(-1, 2), (2, 2), (3, 1), (0, 5)])
def test_copy_columns_bad_range(begin, end):
    with pytest.raises(ValueError):
        Matrix.from_rows(MAGIC).copy_columns(begin, end)


def test_binary_round_trip():
    M = Matrix.random(5, 3, seed=1)
    stream = io.BytesIO()
    M.fwrite(stream)
    assert len(stream.getvalue()) == 8 + 5 * 3 * 8

    stream.seek(0)
    R = Matrix.fread(stream)
    assert R.shape == (5, 3)
    assert np.array_equal(R.to_numpy(), M.to_numpy())


def test_binary_layout():
    stream = io.BytesIO()
    Matrix.from_rows([[1, 2], [3, 4]]).fwrite(stream)
    raw = stream.getvalue()
    assert np.frombuffer(raw[:8], dtype="<i4").tolist() == [2, 2]
    assert np.frombuffer(raw[8:], dtype="<f8").tolist() == [1, 3, 2, 4]


def test_binary_truncated():
    stream = io.BytesIO()
    Matrix.random(4, 4, seed=2).fwrite(stream)
    raw = stream.getvalue()

    with pytest.raises(EOFError):
        Matrix.fread(io.BytesIO(raw[:-8]))
    with pytest.raises(EOFError):
        Matrix.fread(io.BytesIO(raw[:4]))


def test_text_round_trip():
    M = Matrix.from_rows([[1.5, -2], [0.25, 1e-3]])
    stream = io.StringIO()
    M.fprint(stream)
    assert stream.getvalue().splitlines()[0] == "2 2"

    stream.seek(0)
    R = Matrix.fscan(stream)
    assert np.allclose(R.to_numpy(), M.to_numpy())


def test_text_truncated():
    with pytest.raises(EOFError):
        Matrix.fscan(io.StringIO("2 2\n1 2\n"))


def test_image_columns():
    image = Image.from_array(np.arange(12, dtype=np.uint8).reshape(3, 4))
    M = Matrix.zeros(12, 2)
    M.image_read(1, image)
    assert np.array_equal(M.column(1), np.arange(12))
    assert np.all(M.column(0) == 0)

    M[0, 1] = 300
    M[1, 1] = -5
    out = Image(1, 3, 4)
    M.image_write(1, out)
    assert out.pixels[0] == 255
    assert out.pixels[1] == 0
    assert list(out.pixels[2:]) == list(range(2, 12))


def test_image_size_mismatch():
    image = Image.from_array(np.zeros((2, 2), dtype=np.uint8))
    with pytest.raises(ValueError):
        Matrix.zeros(5, 1).image_read(0, image)


def test_push_pull_noop_on_cpu():
    M = Matrix.from_rows(MAGIC)
    M.push()
    M.pull()
    assert M.device() is M.host()
    assert np.array_equal(M.to_numpy(), np.array(MAGIC, dtype=float))


def test_released_matrix():
    M = Matrix.ones(2, 2)
    M.release()
    with pytest.raises(ValueError):
        M.host()


def test_data_view_is_read_only():
    M = Matrix.from_rows([[1, 2], [3, 4]])
    with pytest.raises(ValueError):
        M.data[0] = 9
    M[0, 0] = 9
    assert M.data[0] == 9

import os

import numpy as np
import pytest

from facerec.database import Database
from facerec.matrix import Matrix
from facerec.visualization import column_to_array, plot_basis, plot_mean_face


def test_column_to_array_scales_to_uint8():
    M = Matrix.from_array(np.arange(6, dtype=float).reshape(6, 1) * 10)
    face = column_to_array(M, 0, 2, 3)
    assert face.shape == (2, 3)
    assert face.dtype == np.uint8
    assert face[0, 0] == 0
    assert face[1, 2] == 255


def test_column_to_array_constant_column():
    face = column_to_array(Matrix.ones(4, 1), 0, 2, 2)
    assert np.all(face == 0)


def test_plots(noisy_faces, tmp_path):
    train_dir, _ = noisy_faces
    db = Database(pca=True, lda=True, verbose=False).train(train_dir)
    fig_dir = str(tmp_path / "figures")

    path = plot_mean_face(db, 8, 8, fig_dir=fig_dir)
    assert os.path.isfile(path)

    path = plot_basis(db, "LDA", 8, 8, n_show=3, fig_dir=fig_dir)
    assert path.endswith("lda_basis.png")
    assert os.path.isfile(path)

    with pytest.raises(ValueError):
        plot_basis(db, "ICA", 8, 8, fig_dir=fig_dir)

import io

import numpy as np
import pytest

from facerec.feature import FEATURE_LAYERS, IdentityLayer, create_layer
from facerec.ica import ICALayer, sigmoid
from facerec.lda import LDALayer, scatter_matrices
from facerec.linalg import mean_column, subtract_columns
from facerec.matrix import Matrix
from facerec.pca import PCALayer


def centered(X):
    mean = mean_column(X)
    subtract_columns(X, mean)
    return X


@pytest.fixture
def clustered():
    """
    (X, labels): 4 classes × 5 samples in 30 dims, mean removed.
    """
    rng = np.random.RandomState(11)
    columns, labels = [], []
    for c in range(4):
        center = rng.randn(30) * 10
        for _ in range(5):
            columns.append(center + rng.randn(30))
            labels.append(c)
    X = Matrix.from_array(np.column_stack(columns))
    return centered(X), labels


# ==============================================================================
# IDENTITY
# ==============================================================================

def test_identity_layer():
    layer = IdentityLayer()
    X = Matrix.random(3, 2, seed=0)
    assert layer.compute(X) is None
    Y = layer.project(X)
    assert Y is not X
    assert np.array_equal(Y.to_numpy(), X.to_numpy())
    assert layer.describe() == "Identity"


# ==============================================================================
# PCA
# ==============================================================================

@pytest.mark.parametrize("d, n", [(30, 10), (5, 40)])
def test_pca_basis(d, n):
    X = centered(Matrix.random(d, n, seed=d))
    layer = PCALayer()
    W = layer.compute(X)

    k = min(d, n - 1)
    assert W.shape == (d, k)
    w = layer.D.to_numpy()[:, 0]
    assert np.all(np.diff(w) <= 0)
    assert np.all(w > 0)
    assert np.allclose(W.to_numpy().T @ W.to_numpy(), np.eye(k), atol=1e-8)


def test_pca_matches_covariance_eigenvalues():
    X = centered(Matrix.random(20, 8, seed=3))
    layer = PCALayer()
    layer.compute(X)

    expected = np.sort(np.linalg.eigvalsh(np.cov(X.to_numpy())))[::-1][:7]
    assert np.allclose(layer.D.to_numpy()[:, 0], expected)


def test_pca_n1_truncates():
    X = centered(Matrix.random(20, 8, seed=4))
    layer = PCALayer(n1=3)
    assert layer.compute(X).shape == (20, 3)
    assert layer.project(X).shape == (3, 8)


def test_pca_no_variance():
    X = Matrix.zeros(4, 3)
    with pytest.raises(ValueError):
        PCALayer().compute(X)


def test_pca_save_load():
    X = centered(Matrix.random(12, 6, seed=5))
    layer = PCALayer()
    layer.compute(X)

    stream = io.BytesIO()
    layer.save(stream)
    stream.seek(0)
    restored = PCALayer()
    restored.load(stream)

    assert np.array_equal(restored.W.to_numpy(), layer.W.to_numpy())
    assert np.array_equal(restored.project(X).to_numpy(), layer.project(X).to_numpy())
    assert "PCA" in restored.describe()


# ==============================================================================
# LDA
# ==============================================================================

def test_scatter_matrices():
    P = Matrix.from_rows([[0, 2, 10, 12]])
    S_b, S_w = scatter_matrices(P, [0, 0, 1, 1], 2)
    # class means 1 and 11, overall mean 6
    assert S_b[0, 0] == pytest.approx(2 * 25 + 2 * 25)
    assert S_w[0, 0] == pytest.approx(4)


def test_lda_dimensions_and_separation(clustered):
    X, labels = clustered
    layer = LDALayer()
    W = layer.compute(X, labels, 4)
    assert W.shape == (30, 3)

    Y = layer.project(X).to_numpy()
    assert np.all(np.isfinite(Y))

    # every sample is closer to its own class mean than to any other
    labels = np.array(labels)
    means = np.column_stack([Y[:, labels == c].mean(axis=1) for c in range(4)])
    for j in range(Y.shape[1]):
        d = np.sum((means - Y[:, [j]]) ** 2, axis=0)
        assert np.argmin(d) == labels[j]


def test_lda_requires_two_classes():
    X = centered(Matrix.random(10, 4, seed=6))
    with pytest.raises(ValueError):
        LDALayer().compute(X, [0, 0, 0, 0], 1)


def test_lda_label_count_mismatch(clustered):
    X, labels = clustered
    with pytest.raises(ValueError):
        LDALayer().compute(X, labels[:-1], 4)


# ==============================================================================
# ICA
# ==============================================================================

def test_sigmoid():
    Y = sigmoid(Matrix.from_rows([[0, 100, -100]]))
    assert np.allclose(Y.to_numpy(), [[0.5, 1, 0]])


def test_ica_shapes_and_determinism(clustered):
    X, _ = clustered
    W1 = ICALayer(num_components=5, max_iterations=50, seed=1).compute(X)
    W2 = ICALayer(num_components=5, max_iterations=50, seed=1).compute(X)

    assert W1.shape == (30, 5)
    assert np.all(np.isfinite(W1.to_numpy()))
    assert np.array_equal(W1.to_numpy(), W2.to_numpy())


def test_ica_reuses_pca_basis(clustered):
    X, _ = clustered
    W_pca = PCALayer().compute(X)
    layer = ICALayer(num_components=4, max_iterations=20)
    W = layer.compute(X, W_pca=W_pca)
    assert W.shape == (30, 4)
    assert layer.project(X).shape == (4, 20)
    assert 1 <= layer.num_steps <= 20


def test_ica_too_many_components():
    X = centered(Matrix.random(3, 10, seed=7))
    with pytest.raises(ValueError):
        ICALayer(max_iterations=5).compute(X)


# ==============================================================================
# REGISTRY
# ==============================================================================

def test_create_layer():
    assert set(FEATURE_LAYERS) == {"identity", "pca", "lda", "ica"}
    assert isinstance(create_layer("PCA", n1=2), PCALayer)
    assert create_layer("pca", n1=2).n1 == 2
    assert isinstance(create_layer("identity"), IdentityLayer)
    with pytest.raises(ValueError):
        create_layer("svm")

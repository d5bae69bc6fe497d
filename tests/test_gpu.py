import numpy as np
import pytest

from facerec.backend import set_backend
from facerec.linalg import covariance, eigen, inverse, product
from facerec.matrix import Matrix

cp = pytest.importorskip("cupy")


@pytest.fixture
def gpu():
    try:
        backend = set_backend("gpu")
    except ValueError:
        pytest.skip("CUDA device not available")
    yield backend
    set_backend("cpu")


def test_gpu_matches_cpu(gpu):
    A = np.random.RandomState(0).randn(6, 6)
    expected = A @ A.T

    M = Matrix.from_array(A)
    M_tr = Matrix.from_array(A.T)
    P = product(M, M_tr)
    assert P._device_dirty
    assert np.allclose(P.to_numpy(), expected)

    M_inv = inverse(P)
    assert np.allclose(product(P, M_inv).to_numpy(), np.eye(6), atol=1e-8)

    M_eval, _ = eigen(P)
    assert np.allclose(M_eval.to_numpy()[:, 0], np.linalg.eigvalsh(expected))


def test_push_after_host_write(gpu):
    M = Matrix.ones(3, 3)
    C = covariance(M)
    assert np.allclose(C.to_numpy(), 0)

    M[0, 0] = 4
    M.push()
    assert float(cp.asnumpy(M.device())[0, 0]) == 4

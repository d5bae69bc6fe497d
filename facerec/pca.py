"""
PCA Feature Layer - Eigenfaces (Turk & Pentland, 1991).

PCA Algorithm:
    1. Input X (d × n): mean-removed training images, mỗi ảnh một cột
    2. Covariance: C = (1/(n-1)) · X · Xᵀ              (d × d)
    3. Eigendecompose C → (λ, V), λ tăng dần
    4. Đảo thứ tự → λ giảm dần; bỏ các λ không dương (numerically)
    5. Giữ top-n1 eigenvectors: W (d × k), cột trực chuẩn
    6. Project: Y = Wᵀ · X                               (k × n)

Trick khi d > n (ảnh có nhiều pixel hơn số ảnh):
    - L = (1/(n-1)) · Xᵀ · X là n × n (nhỏ hơn nhiều so với d × d)
    - Nếu L·u = λ·u thì C·(X·u) = λ·(X·u)
    - → eigenvectors của C: vᵢ = X·uᵢ / ‖X·uᵢ‖, cùng eigenvalues

Reference:
  - Turk, M., & Pentland, A. (1991). "Eigenfaces for recognition"

Author: Mathematics for AI - Final Project
"""

import numpy as np

from facerec import config
from facerec.linalg import (
    covariance, eigen, elem_mult, flip_columns, mean_column, product,
    subtract_columns, transpose,
)
from facerec.matrix import Matrix


def _symmetrize(M):
    host = M.host(write=True)
    host[...] = (host + host.T) / 2


def positive_count(M_eval):
    """Number of numerically positive eigenvalues."""
    w = M_eval.host()[:, 0]
    tol = config.EIGEN_TOL * max(float(np.max(np.abs(w))), np.finfo(np.float64).tiny)
    return int(np.sum(w > tol))


class PCALayer:
    """
    Principal Component Analysis feature layer.

    Attributes:
        n1: số components cần giữ (<= 0 = giữ tất cả eigenvalues dương)
        W: Matrix (d × k) - basis, cột sắp theo eigenvalue giảm dần
        D: Matrix (k × 1) - eigenvalues tương ứng (giảm dần)
    """

    def __init__(self, n1=None):
        self.n1 = config.PCA_N1 if n1 is None else n1
        self.W = None
        self.D = None

    def compute(self, X, entries=None, num_classes=None):
        """
        Compute the PCA basis of mean-removed data X.

        Args:
            X: Matrix (d × n) - training images as columns
            entries, num_classes: unused (feature-layer contract)

        Returns:
            Matrix W (d × k)

        Raises:
            ValueError: X has no direction of positive variance
        """
        d, n = X.rows, X.cols

        if d > n:
            # n × n surrogate
            A = X.copy()
            mean = mean_column(A)
            subtract_columns(A, mean)

            A_tr = transpose(A)
            L = product(A_tr, A)
            elem_mult(L, 1.0 / max(n - 1, 1))
            _symmetrize(L)

            M_eval, M_evec = eigen(L)
            A_tr.release()
            L.release()
            mean.release()
        else:
            A = None
            C = covariance(X)
            _symmetrize(C)
            M_eval, M_evec = eigen(C)
            C.release()

        # eigen() trả về thứ tự tăng dần → đảo lại
        flip_columns(M_evec)
        w = M_eval.host()[::-1, 0].copy()

        k = positive_count(M_eval)
        if self.n1 > 0:
            k = min(k, self.n1)
        if k == 0:
            raise ValueError("PCA: training data has no positive-variance direction")

        U = M_evec.copy_columns(0, k)
        if A is not None:
            # lift to d dims: vᵢ = A·uᵢ / ‖A·uᵢ‖
            W = product(A, U)
            host = W.host(write=True)
            host /= np.sqrt(np.sum(host * host, axis=0, keepdims=True))
            U.release()
            A.release()
        else:
            W = U

        M_eval.release()
        M_evec.release()

        self.W = W
        self.D = Matrix(k, 1, np.asfortranarray(w[:k].reshape(-1, 1)))
        return self.W

    def project(self, X):
        """Y = Wᵀ · X."""
        W_tr = transpose(self.W)
        P = product(W_tr, X)
        W_tr.release()
        return P

    def save(self, stream):
        self.W.fwrite(stream)
        self.D.fwrite(stream)

    def load(self, stream):
        self.W = Matrix.fread(stream)
        self.D = Matrix.fread(stream)

    def describe(self):
        if self.W is None:
            return "PCA (not computed)"
        lines = [
            "PCA",
            f"  n1 = {self.n1}",
            f"  W: {self.W.rows} x {self.W.cols}",
        ]
        if self.D is not None:
            lines.append(f"  top eigenvalues: {self.D.host()[:5, 0]}")
        return "\n".join(lines)

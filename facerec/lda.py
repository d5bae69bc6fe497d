"""
LDA Feature Layer - Fisherfaces (Belhumeur, Hespanha & Kriegman, 1997).

Thuật toán:
    1. PCA: giảm X (d × n) xuống n1 = n - c chiều → S_w không suy biến
    2. Trong không gian PCA (P = W_pcaᵀ · X):
         S_b = Σᵢ nᵢ (μᵢ - μ)(μᵢ - μ)ᵀ            (between-class scatter)
         S_w = Σᵢ Σ_{x∈i} (x - μᵢ)(x - μᵢ)ᵀ         (within-class scatter)
    3. Generalized eigenproblem: S_b · w = λ · S_w · w
    4. Giữ n2 = c - 1 eigenvectors có λ lớn nhất → W_fld (n1 × n2)
    5. W = W_pca · W_fld                              (d × n2)

Reference:
  - Belhumeur et al. (1997), "Eigenfaces vs. Fisherfaces"

Author: Mathematics for AI - Final Project
"""

import numpy as np

from facerec import config
from facerec.linalg import (
    add, eigen2, elem_mult, flip_columns, mean_column, product, subtract,
    subtract_columns, transpose,
)
from facerec.matrix import Matrix
from facerec.pca import PCALayer


def _symmetrize(M):
    host = M.host(write=True)
    host[...] = (host + host.T) / 2


def scatter_matrices(P, labels, num_classes):
    """
    Between-class and within-class scatter of the columns of P.

    Args:
        P: Matrix (k × n)
        labels: sequence of class ids (length n)
        num_classes: c

    Returns:
        tuple: (S_b, S_w), each Matrix (k × k)
    """
    labels = np.asarray(labels)
    k = P.rows

    S_b = Matrix.zeros(k, k)
    S_w = Matrix.zeros(k, k)
    mu = mean_column(P)

    for i in range(num_classes):
        idx = np.nonzero(labels == i)[0]
        if idx.size == 0:
            continue

        P_i = Matrix.from_array(P.host()[:, idx])
        mu_i = mean_column(P_i)

        # S_w += (P_i - μᵢ)(P_i - μᵢ)ᵀ
        subtract_columns(P_i, mu_i)
        P_i_tr = transpose(P_i)
        S_i = product(P_i, P_i_tr)
        add(S_w, S_i)

        # S_b += nᵢ (μᵢ - μ)(μᵢ - μ)ᵀ
        subtract(mu_i, mu)
        mu_i_tr = transpose(mu_i)
        B_i = product(mu_i, mu_i_tr)
        elem_mult(B_i, idx.size)
        add(S_b, B_i)

        for M in (P_i, mu_i, P_i_tr, S_i, mu_i_tr, B_i):
            M.release()

    mu.release()
    _symmetrize(S_b)
    _symmetrize(S_w)
    return S_b, S_w


class LDALayer:
    """
    Linear Discriminant Analysis feature layer (Fisherfaces).

    Attributes:
        n1: số chiều PCA trước FLD (<= 0 = n - c)
        n2: số chiều FLD (<= 0 = c - 1)
        W: Matrix (d × n2) - combined projection W_pca · W_fld
    """

    def __init__(self, n1=None, n2=None):
        self.n1 = config.LDA_N1 if n1 is None else n1
        self.n2 = config.LDA_N2 if n2 is None else n2
        self.W = None

    def compute(self, X, entries, num_classes, W_pca=None):
        """
        Compute the Fisherfaces projection.

        Args:
            X: Matrix (d × n) - mean-removed training images
            entries: list[ImageEntry] (or class ids), one per column of X
            num_classes: c
            W_pca: PCA basis already computed for X (reused if given)

        Returns:
            Matrix W (d × n2)
        """
        n, c = X.cols, num_classes
        if len(entries) != n:
            raise ValueError(f"LDA: {len(entries)} labels for {n} samples")
        if c < 2:
            raise ValueError("LDA requires at least 2 classes")

        labels = [getattr(e, "ent_class", e) for e in entries]

        n1 = self.n1 if self.n1 > 0 else n - c
        n2 = self.n2 if self.n2 > 0 else c - 1

        if W_pca is None:
            W_pca = PCALayer(n1).compute(X)
        n1 = min(n1, W_pca.cols)
        if n1 <= 0:
            raise ValueError(f"LDA: need n - c > 0 PCA dimensions (n={n}, c={c})")
        n2 = min(n2, n1)

        # project X into the n1-dim PCA space
        W_pca2 = W_pca.copy_columns(0, n1)
        W_pca2_tr = transpose(W_pca2)
        P_pca = product(W_pca2_tr, X)

        S_b, S_w = scatter_matrices(P_pca, labels, c)

        # S_b · w = λ · S_w · w, λ tăng dần → đảo lại
        M_eval, M_evec = eigen2(S_b, S_w)
        flip_columns(M_evec)
        W_fld = M_evec.copy_columns(0, n2)

        self.W = product(W_pca2, W_fld)

        for M in (W_pca2, W_pca2_tr, P_pca, S_b, S_w, M_eval, M_evec, W_fld):
            M.release()

        return self.W

    def project(self, X):
        """Y = Wᵀ · X."""
        W_tr = transpose(self.W)
        P = product(W_tr, X)
        W_tr.release()
        return P

    def save(self, stream):
        self.W.fwrite(stream)

    def load(self, stream):
        self.W = Matrix.fread(stream)

    def describe(self):
        if self.W is None:
            return "LDA (not computed)"
        return "\n".join([
            "LDA",
            f"  n1 = {self.n1}",
            f"  n2 = {self.n2}",
            f"  W: {self.W.rows} x {self.W.cols}",
        ])

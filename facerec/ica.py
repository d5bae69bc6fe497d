"""
ICA Feature Layer - Independent Component Analysis, Architecture I
(Bartlett, Movellan & Sejnowski, 2002) với thuật toán infomax
(Bell & Sejnowski, 1995).

Thuật toán:
    1. PCA: V (d × m) = top-m eigenfaces của X
    2. Signals R = Vᵀ (m × d): mỗi eigenface là một "tín hiệu" d mẫu
       (bỏ mean theo từng hàng)
    3. Sphering: W_z = 2 · sqrtm(cov(R))⁻¹,  x = W_z · R
    4. Infomax (logistic nonlinearity), mỗi block gồm b cột của x:
         u  = W · x_b + w₀
         y  = 1 / (1 + exp(-u))
         W ← W + η · (b·I + (1 - 2y)·uᵀ) · W
         w₀ ← w₀ + η · Σ_cols (1 - 2y)
    5. W_I = W · W_z
    6. Hệ số ICA của ảnh x: c = W_I⁻ᵀ · Vᵀ · x
       → W_ica = V · W_I⁻¹  (d × m),  project = W_icaᵀ · X

Reference:
  - Bell, A. J., & Sejnowski, T. J. (1995). "An information-maximization
    approach to blind separation and blind deconvolution"
  - Bartlett, M. S., et al. (2002). "Face recognition by independent
    component analysis"

Author: Mathematics for AI - Final Project
"""

import math

import numpy as np
from tqdm import tqdm

from facerec import config
from facerec.linalg import (
    NumericalError, add, covariance, elem_add, elem_divide_by, elem_exp,
    elem_mult, elem_negate, inverse, mean_column, product, sqrtm,
    subtract_columns, sum_rows, transpose,
)
from facerec.matrix import Matrix
from facerec.pca import PCALayer

MAX_WEIGHT = 1e8            # weights above this count as a blow-up
RESTART_FACTOR = 0.9        # learning rate multiplier after a blow-up
MIN_LEARNING_RATE = 1e-6


def sigmoid(U):
    """Y = 1 / (1 + exp(-U)), elementwise (new Matrix)."""
    Y = U.copy()
    elem_negate(Y)
    elem_exp(Y)
    elem_add(Y, 1.0)
    elem_divide_by(Y, 1.0)
    return Y


class ICALayer:
    """
    ICA (Architecture I) feature layer.

    Attributes:
        num_components: số eigenfaces đưa vào infomax (<= 0 = tất cả)
        max_iterations: số sweep tối đa qua dữ liệu
        learning_rate: η (<= 0 = 0.00065 / log(m), như runica)
        block_size: số cột mỗi update (<= 0 = ceil(sqrt(d / 3)))
        W: Matrix (d × m) - projection, project = Wᵀ · X
    """

    def __init__(self, num_components=None, max_iterations=None,
                 learning_rate=None, block_size=None, seed=None):
        self.num_components = (config.ICA_NUM_COMPONENTS
                               if num_components is None else num_components)
        self.max_iterations = (config.ICA_MAX_ITERATIONS
                               if max_iterations is None else max_iterations)
        self.learning_rate = (config.ICA_LEARNING_RATE
                              if learning_rate is None else learning_rate)
        self.block_size = config.ICA_BLOCK_SIZE if block_size is None else block_size
        self.seed = config.RANDOM_SEED if seed is None else seed
        self.W = None
        self.num_steps = 0

    # ==========================================================================
    # INFOMAX
    # ==========================================================================

    def _infomax_run(self, x, lrate, block, verbose):
        """
        One infomax run from W = I.

        Returns:
            Matrix W (m × m), or None if the weights blew up
        """
        m, N = x.rows, x.cols
        x_host = x.host()

        W = Matrix.identity(m)
        bias = Matrix.zeros(m, 1)
        BI = Matrix.identity(m)
        elem_mult(BI, float(block))

        rng = np.random.RandomState(self.seed)

        iterator = range(self.max_iterations)
        if verbose:
            iterator = tqdm(iterator, desc="  Infomax ICA")

        for step in iterator:
            W_old = W.copy()
            perm = rng.permutation(N)

            for t in range(0, N - block + 1, block):
                x_b = Matrix.from_array(x_host[:, perm[t:t + block]])

                # u = W · x_b + w₀
                U = product(W, x_b)
                U.host(write=True)[...] += bias.host()

                # z = 1 - 2·sigmoid(u)
                Z = sigmoid(U)
                elem_mult(Z, -2.0)
                elem_add(Z, 1.0)

                # W += η · (b·I + z·uᵀ) · W
                U_tr = transpose(U)
                G = product(Z, U_tr)
                add(G, BI)
                dW = product(G, W)
                elem_mult(dW, lrate)
                add(W, dW)

                # w₀ += η · Σ z
                db = sum_rows(Z)
                elem_mult(db, lrate)
                add(bias, db)

                for M in (x_b, U, Z, U_tr, G, dW, db):
                    M.release()

                w = W.host()
                if not np.all(np.isfinite(w)) or np.max(np.abs(w)) > MAX_WEIGHT:
                    return None

            self.num_steps = step + 1
            diff = W.host() - W_old.host()
            W_old.release()
            if float(np.sum(diff * diff)) < config.ICA_STOP:
                break

        return W

    def infomax(self, x, verbose=None):
        """
        Logistic infomax on sphered data x (m × N).

        Weights blowing up restart the run with a smaller learning rate.

        Raises:
            NumericalError: learning rate fell below MIN_LEARNING_RATE
        """
        if verbose is None:
            verbose = config.VERBOSE
        m, N = x.rows, x.cols

        lrate = self.learning_rate
        if lrate <= 0:
            lrate = 0.00065 / math.log(max(m, 2))
        block = self.block_size
        if block <= 0:
            block = int(math.ceil(math.sqrt(N / 3.0)))
        block = max(1, min(block, N))

        while True:
            W = self._infomax_run(x, lrate, block, verbose)
            if W is not None:
                return W
            lrate *= RESTART_FACTOR
            if verbose:
                print(f"  [ICA] Weights blew up, restarting with lrate = {lrate:g}",
                      flush=True)
            if lrate < MIN_LEARNING_RATE:
                raise NumericalError("ICA: infomax weights diverged")

    # ==========================================================================
    # FEATURE LAYER CONTRACT
    # ==========================================================================

    def compute(self, X, entries=None, num_classes=None, W_pca=None, verbose=None):
        """
        Compute the ICA projection of mean-removed data X.

        Args:
            X: Matrix (d × n)
            entries, num_classes: unused (feature-layer contract)
            W_pca: PCA basis already computed for X (reused if given)

        Returns:
            Matrix W (d × m)
        """
        if W_pca is None:
            W_pca = PCALayer(self.num_components).compute(X)
        m = W_pca.cols
        if self.num_components > 0:
            m = min(m, self.num_components)
        if m >= X.rows:
            raise ValueError(
                f"ICA: need fewer components ({m}) than dimensions ({X.rows})")

        V = W_pca.copy_columns(0, m)

        # R = Vᵀ, bỏ mean theo hàng
        R = transpose(V)
        R_mean = mean_column(R)
        subtract_columns(R, R_mean)

        # W_z = 2 · sqrtm(cov(R))⁻¹
        C = covariance(R)
        S = sqrtm(C)
        W_z = inverse(S)
        elem_mult(W_z, 2.0)

        x = product(W_z, R)
        W = self.infomax(x, verbose)

        # W_ica = V · (W · W_z)⁻¹
        W_I = product(W, W_z)
        W_I_inv = inverse(W_I)
        self.W = product(V, W_I_inv)

        for M in (V, R, R_mean, C, S, W_z, x, W, W_I, W_I_inv):
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
            return "ICA (not computed)"
        return "\n".join([
            "ICA",
            f"  components: {self.W.cols}",
            f"  infomax steps: {self.num_steps}",
            f"  W: {self.W.rows} x {self.W.cols}",
        ])

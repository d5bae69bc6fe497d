"""
Linear Algebra Kernel - Các phép toán trên Matrix.

╔══════════════════════════════════════════════════════════════════════════╗
║  Dense ops (product, eigen, eigen2, inverse, sqrtm) → active backend    ║
║    CPU: numpy → BLAS / LAPACK      GPU: CuPy → cuBLAS / cuSOLVER        ║
║  Elementwise ops + reductions → host loops (không cần GPU)              ║
╚══════════════════════════════════════════════════════════════════════════╝

Các nhóm phép toán:
  1. Product, transpose, add/subtract
  2. Mean column, covariance
  3. Eigendecomposition (symmetric + generalized symmetric-definite)
  4. Inverse (LU), principal square root
  5. Elementwise transforms (in place)
  6. Reductions, reshape, column utilities

Error handling:
  - Sai shape / index (precondition) → ValueError ngay tại call boundary
  - Lỗi số học (singular inverse, eigenvalue âm trong sqrtm) → NumericalError
    khi config.CHECK_NUMERICS = True; ngược lại NaN lan truyền như
    thư viện cũ

Reference:
  - Golub & Van Loan (2013), "Matrix Computations" (4th ed.)

Author: Mathematics for AI - Final Project
"""

import numpy as np

from facerec import config
from facerec.backend import get_backend
from facerec.matrix import Matrix


class NumericalError(ArithmeticError):
    """A kernel operation produced a numerically invalid result."""


def numerical_failure(message):
    """Raise NumericalError unless legacy NaN propagation is configured."""
    if config.CHECK_NUMERICS:
        raise NumericalError(message)


def _check_square(M, op):
    if M.rows != M.cols:
        raise ValueError(f"{op} requires a square matrix, got {M.rows}x{M.cols}")


def _check_same_shape(A, B, op):
    if A.rows != B.rows or A.cols != B.cols:
        raise ValueError(
            f"{op}: shape mismatch {A.rows}x{A.cols} vs {B.rows}x{B.cols}")


def _check_symmetric(backend, a, op):
    scale = float(abs(a).max()) if a.size else 0.0
    if not backend.allclose(a, a.T, rtol=1e-9, atol=1e-9 * max(scale, 1.0)):
        raise ValueError(f"{op} requires a symmetric matrix")


# ==============================================================================
# 1. PRODUCT, TRANSPOSE, ADD / SUBTRACT
# ==============================================================================

def product(A, B):
    """
    C = A · B.

    Một lệnh gemm duy nhất: C := 1·A·B + 0·C.

    Raises:
        ValueError: A.cols != B.rows
    """
    if A.cols != B.rows:
        raise ValueError(
            f"product: inner dimensions differ ({A.rows}x{A.cols} · {B.rows}x{B.cols})")
    backend = get_backend()
    return Matrix._from_backend(backend.gemm(A.device(), B.device()))


def transpose(M):
    host = np.array(M.host().T, dtype=np.float64, order="F")
    return Matrix(M.cols, M.rows, host)


def add(A, B):
    """A += B (in place)."""
    _check_same_shape(A, B, "add")
    A.host(write=True)[...] += B.host()


def subtract(A, B):
    """A -= B (in place)."""
    _check_same_shape(A, B, "subtract")
    A.host(write=True)[...] -= B.host()


# ==============================================================================
# 2. MEAN COLUMN, COVARIANCE
# ==============================================================================

def mean_column(M):
    """Column vector a (rows × 1), a = (1/cols) Σⱼ M[:, j]."""
    host = M.host().sum(axis=1, keepdims=True) / M.cols
    return Matrix(M.rows, 1, np.asfortranarray(host))


def subtract_columns(M, a):
    """Subtract column vector a from every column of M (in place)."""
    if a.rows != M.rows or a.cols != 1:
        raise ValueError(
            f"subtract_columns: expected a {M.rows}x1 vector, got {a.rows}x{a.cols}")
    M.host(write=True)[...] -= a.host()


def covariance(M):
    """
    Covariance matrix, treating columns of M as observations.

    Công thức:
        A = M - mean · 1ᵀ          (mean-removed)
        C = (1 / (n - 1)) · A · Aᵀ  (divisor floors at 1 when n <= 1)

    Args:
        M: Matrix (d × n) - n observations of dimension d

    Returns:
        Matrix (d × d)
    """
    A = M.copy()
    mean = mean_column(A)
    subtract_columns(A, mean)

    backend = get_backend()
    a = A.device()
    C = Matrix._from_backend(backend.gemm(a, a.T))

    c = M.cols - 1 if M.cols > 1 else 1
    elem_mult(C, 1.0 / c)

    A.release()
    mean.release()
    return C


# ==============================================================================
# 3. EIGENDECOMPOSITION
# ==============================================================================

def eigen(M):
    """
    Symmetric eigendecomposition M = V · diag(λ) · Vᵀ.

    Returns:
        tuple: (M_eval, M_evec)
            - M_eval: Matrix (n × 1), eigenvalues ascending
            - M_evec: Matrix (n × n), column i pairs with eigenvalue i

    Raises:
        ValueError: M not square or not symmetric
    """
    _check_square(M, "eigen")
    backend = get_backend()
    a = M.device()
    _check_symmetric(backend, a, "eigen")

    w, v = backend.eigh(a)
    M_eval = Matrix._from_backend(w.reshape(-1, 1))
    M_evec = Matrix._from_backend(v)
    return M_eval, M_evec


def eigen2(A, B):
    """
    Generalized symmetric-definite eigenproblem A·x = λ·B·x.

    Thuật toán (reduction to standard form, như LAPACK sygv):
        1. B = L·Lᵀ                   (Cholesky, B phải positive definite)
        2. C = L⁻¹ · A · L⁻ᵀ          (symmetric)
        3. C = Y · diag(λ) · Yᵀ
        4. X = L⁻ᵀ · Y                (Xᵀ·B·X = I)

    Returns:
        tuple: (M_eval, M_evec) with the same ordering contract as eigen()

    Raises:
        ValueError: not square, different dimensions, or not symmetric
        NumericalError: B not positive definite (CHECK_NUMERICS)
    """
    _check_square(A, "eigen2")
    _check_square(B, "eigen2")
    if A.rows != B.rows:
        raise ValueError(f"eigen2: dimension mismatch {A.rows} vs {B.rows}")

    backend = get_backend()
    xp = backend.xp
    a = A.device()
    b = B.device()
    _check_symmetric(backend, a, "eigen2")
    _check_symmetric(backend, b, "eigen2")

    try:
        L = backend.cholesky(b)
    except np.linalg.LinAlgError as e:
        numerical_failure(f"eigen2: B is not positive definite ({e})")
        n = A.rows
        nan = xp.full((n, n), xp.nan, dtype=xp.float64, order="F")
        return (Matrix._from_backend(xp.full((n, 1), xp.nan)),
                Matrix._from_backend(nan))

    # C = L⁻¹ A L⁻ᵀ via two solves
    Y = backend.solve(L, a)
    C = backend.solve(L, Y.T)
    C = (C + C.T) / 2

    w, v = backend.eigh(C)
    X = backend.solve(L.T, v)

    if not backend.all_finite(X):
        numerical_failure("eigen2: non-finite eigenvectors (B is not positive definite)")

    return Matrix._from_backend(w.reshape(-1, 1)), Matrix._from_backend(xp.asfortranarray(X))


# ==============================================================================
# 4. INVERSE, SQUARE ROOT
# ==============================================================================

def inverse(M):
    """
    M⁻¹ via LU factorization + explicit inversion.

    Singular M: LAPACK không phát hiện → kết quả là garbage.
    With config.CHECK_NUMERICS the result is validated (finite, and
    cond(M) below config.SINGULAR_COND) and NumericalError is raised.

    Raises:
        ValueError: M not square
    """
    _check_square(M, "inverse")
    backend = get_backend()
    xp = backend.xp
    a = M.device()

    try:
        M_inv = backend.inv(a)
    except np.linalg.LinAlgError as e:
        numerical_failure(f"inverse: singular matrix ({e})")
        M_inv = xp.full((M.rows, M.cols), xp.nan, dtype=xp.float64, order="F")
    else:
        if config.CHECK_NUMERICS:
            if not backend.all_finite(M_inv):
                numerical_failure("inverse: non-finite result (singular matrix)")
            s = backend.singular_values(a)
            if s[-1] == 0 or s[0] / s[-1] > config.SINGULAR_COND:
                numerical_failure("inverse: matrix is singular to working precision")

    return Matrix._from_backend(M_inv)


def sqrtm(M):
    """
    Principal square root of a symmetric matrix: X·X = M.

    Công thức:
        M = V · diag(λ) · Vᵀ   →   X = V · diag(√λ) · Vᵀ
    (V orthonormal từ eigen() nên V⁻¹ = Vᵀ.)

    Eigenvalues âm do sai số làm tròn (|λ| <= EIGEN_TOL · max|λ|) được coi là 0.
    Eigenvalue âm thật sự → NaN (hoặc NumericalError nếu CHECK_NUMERICS).
    """
    _check_square(M, "sqrtm")
    M_eval, M_evec = eigen(M)

    w = M_eval.host()[:, 0].copy()
    tol = config.EIGEN_TOL * max(float(np.max(np.abs(w))), np.finfo(np.float64).tiny)
    w[(w < 0) & (w >= -tol)] = 0.0

    if np.any(w < 0):
        numerical_failure(
            f"sqrtm: matrix has negative eigenvalue {float(w.min()):g}")

    with np.errstate(invalid="ignore"):
        lambdas = np.sqrt(w)

    # B = V · sqrt(D)
    B = M_evec.copy()
    B.host(write=True)[...] *= lambdas[np.newaxis, :]

    V_tr = transpose(M_evec)
    X = product(B, V_tr)

    M_eval.release()
    M_evec.release()
    B.release()
    V_tr.release()
    return X


def diagonalize(v):
    """Diagonal matrix from a row or column vector (MATLAB diag(v))."""
    if v.rows != 1 and v.cols != 1:
        raise ValueError(f"diagonalize: expected a vector, got {v.rows}x{v.cols}")
    values = v.host().reshape(-1, order="F")
    n = values.shape[0]
    return Matrix(n, n, np.asfortranarray(np.diag(values)))


# ==============================================================================
# 5. ELEMENTWISE TRANSFORMS (IN PLACE, HOST ONLY)
# ==============================================================================

def elem_sqrt(M):
    with np.errstate(invalid="ignore"):
        np.sqrt(M.host(write=True), out=M._host)


def elem_exp(M):
    with np.errstate(over="ignore"):
        np.exp(M.host(write=True), out=M._host)


def elem_acos(M):
    with np.errstate(invalid="ignore"):
        np.arccos(M.host(write=True), out=M._host)


def elem_negate(M):
    np.negative(M.host(write=True), out=M._host)


def elem_pow(M, num):
    with np.errstate(invalid="ignore", over="ignore"):
        np.power(M.host(write=True), num, out=M._host)


def elem_add(M, x):
    M.host(write=True)[...] += x


def elem_mult(M, c):
    M.host(write=True)[...] *= c


def elem_divide_by(M, num):
    """M[i, j] = num / M[i, j]."""
    with np.errstate(divide="ignore", invalid="ignore"):
        np.divide(num, M.host(write=True), out=M._host)


def elem_truncate(M):
    """Truncate toward zero (MATLAB fix)."""
    np.trunc(M.host(write=True), out=M._host)


def normalize(M):
    """Min-max normalize all entries to [0, 1]."""
    host = M.host(write=True)
    lo, hi = host.min(), host.max()
    with np.errstate(invalid="ignore", divide="ignore"):
        host[...] = (host - lo) / (hi - lo)


# ==============================================================================
# 6. REDUCTIONS, RESHAPE, COLUMN UTILITIES
# ==============================================================================

def sum_columns(M):
    """Sum of each column → row vector (1 × cols)."""
    host = M.host().sum(axis=0, keepdims=True)
    return Matrix(1, M.cols, np.asfortranarray(host))


def sum_rows(M):
    """Sum of each row → column vector (rows × 1)."""
    host = M.host().sum(axis=1, keepdims=True)
    return Matrix(M.rows, 1, np.asfortranarray(host))


def reshape(M, rows, cols, order="C"):
    """
    Reshape giữ nguyên dữ liệu.

    order="C" (mặc định): duyệt theo row-major, giống thư viện cũ - đây là
    cách diễn giải row-major của một buffer column-major, giữ lại để tương
    thích với dữ liệu đã lưu.
    order="F": reshape column-major nhất quán với storage convention.

    Raises:
        ValueError: rows * cols != M.rows * M.cols, or unknown order
    """
    if M.rows * M.cols != rows * cols:
        raise ValueError(
            f"reshape: cannot reshape {M.rows}x{M.cols} into {rows}x{cols}")
    if order not in ("C", "F"):
        raise ValueError(f"reshape: unknown order {order!r}")
    host = M.host().reshape((rows, cols), order=order)
    return Matrix(rows, cols, np.array(host, dtype=np.float64, order="F"))


def flip_columns(M):
    """Reverse the column order in place (MATLAB fliplr)."""
    host = M.host(write=True)
    host[...] = host[:, ::-1].copy()


def find_nonzeros(M):
    """
    1-based row indices of non-zero entries, scanned row by row, in a
    (rows*cols × 1) column padded with zeros (MATLAB find).
    """
    host = M.host()
    R = Matrix.zeros(M.rows * M.cols, 1)
    rows_idx, _ = np.nonzero(host)
    R.host(write=True)[:len(rows_idx), 0] = rows_idx + 1
    return R


def reorder_columns(M, V):
    """
    Reorder columns: R[:, j] = M[:, V[0, j]].

    Raises:
        ValueError: V is not 1 × M.cols
    """
    if V.rows != 1 or V.cols != M.cols:
        raise ValueError(
            f"reorder_columns: expected a 1x{M.cols} index vector, got {V.rows}x{V.cols}")
    order = V.host()[0].astype(int)
    if np.any(order < 0) or np.any(order >= M.cols):
        raise ValueError("reorder_columns: column index out of range")
    host = np.array(M.host()[:, order], dtype=np.float64, order="F")
    return Matrix(M.rows, M.cols, host)

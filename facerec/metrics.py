"""
Distance Metrics - Khoảng cách giữa các column vectors.

Các metrics (quy ước: giá trị NHỎ hơn = GIỐNG hơn):
  1. L2:  d(a, b) = Σᵢ (aᵢ - bᵢ)²           (squared Euclidean)
  2. L1:  d(a, b) = √L2 = ‖a - b‖₂          (Euclidean)
  3. COS: d(a, b) = -(a·b) / (‖a‖·‖b‖)      (negated cosine similarity)

Mỗi metric có 2 dạng:
  - dist_X(A, i, B, j): khoảng cách giữa cột i của A và cột j của B
  - dist_X_batch(P, q): khoảng cách từ column vector q tới mọi cột của P

Author: Mathematics for AI - Final Project
"""

import numpy as np

from facerec.linalg import numerical_failure


def _check_rows(A, B):
    if A.rows != B.rows:
        raise ValueError(f"Distance requires equal row counts, got {A.rows} vs {B.rows}")


def _check_query(P, q):
    _check_rows(P, q)
    if q.cols != 1:
        raise ValueError(f"Query must be a column vector, got {q.rows}x{q.cols}")


# ==============================================================================
# 1. L2 DISTANCE (squared Euclidean)
# ==============================================================================

def dist_L2(A, i, B, j):
    """
    L2 là BÌNH PHƯƠNG của khoảng cách Euclid:
        d_L2(x, y) = ‖x - y‖²
    """
    _check_rows(A, B)
    diff = A.host()[:, i] - B.host()[:, j]
    return float(np.dot(diff, diff))


def dist_L2_batch(P, q):
    _check_query(P, q)
    diff = P.host() - q.host()
    return np.sum(diff * diff, axis=0)


# ==============================================================================
# 2. L1 DISTANCE (Euclidean)
# ==============================================================================

def dist_L1(A, i, B, j):
    """d_L1(x, y) = ‖x - y‖ = sqrt(d_L2(x, y))."""
    return float(np.sqrt(dist_L2(A, i, B, j)))


def dist_L1_batch(P, q):
    return np.sqrt(dist_L2_batch(P, q))


# ==============================================================================
# 3. COS DISTANCE (negated cosine similarity)
# ==============================================================================

def dist_COS(A, i, B, j):
    """
    Cosine angle, negated so that smaller means more similar:
        d_cos(x, y) = -x·y / (‖x‖·‖y‖)

    Vector có norm = 0 → kết quả không xác định (NaN); raise NumericalError
    when config.CHECK_NUMERICS is set.
    """
    _check_rows(A, B)
    x = A.host()[:, i]
    y = B.host()[:, j]

    abs_x = np.sqrt(np.dot(x, x))
    abs_y = np.sqrt(np.dot(y, y))
    if abs_x == 0 or abs_y == 0:
        numerical_failure("dist_COS: zero-norm vector")

    with np.errstate(divide="ignore", invalid="ignore"):
        return float(-np.dot(x, y) / (abs_x * abs_y))


def dist_COS_batch(P, q):
    _check_query(P, q)
    X = P.host()
    y = q.host()[:, 0]

    norms = np.sqrt(np.sum(X * X, axis=0))
    abs_y = np.sqrt(np.dot(y, y))
    if abs_y == 0 or np.any(norms == 0):
        numerical_failure("dist_COS: zero-norm vector")

    with np.errstate(divide="ignore", invalid="ignore"):
        return -(y @ X) / (norms * abs_y)


# ==============================================================================
# 4. METRIC REGISTRY
# ==============================================================================

METRIC_FUNCTIONS = {
    "L1": (dist_L1, dist_L1_batch),
    "L2": (dist_L2, dist_L2_batch),
    "COS": (dist_COS, dist_COS_batch),
}


def get_metric(metric_name):
    """
    Returns:
        tuple: (pairwise function, batch function)

    Raises:
        ValueError: unknown metric name
    """
    try:
        return METRIC_FUNCTIONS[metric_name]
    except KeyError:
        raise ValueError(
            f"Unknown metric {metric_name!r}, expected one of {sorted(METRIC_FUNCTIONS)}"
        ) from None

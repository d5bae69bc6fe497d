"""
Visualization - Lưu mean face và các basis images (eigenfaces, ...).

Mỗi cột của basis được đưa về [0, 255] rồi ghi vào Image buffer
(Matrix.image_write), nên ảnh hiển thị đúng layout pixel của dữ liệu gốc.

Author: Mathematics for AI - Final Project
"""

import os

import numpy as np
import matplotlib
matplotlib.use('Agg')  # Non-interactive backend
import matplotlib.pyplot as plt

from facerec.config import FIGURES_DIR
from facerec.image import Image
from facerec.linalg import elem_mult, normalize


def ensure_fig_dir(fig_dir):
    os.makedirs(fig_dir, exist_ok=True)


def column_to_array(M, col, height, width, channels=1):
    """
    Column `col` of M → (H, W) or (H, W, C) uint8 array, min-max scaled.
    """
    C = M.copy_columns(col, col + 1)
    normalize(C)
    np.nan_to_num(C.host(write=True), copy=False)  # constant column
    elem_mult(C, 255.0)

    image = Image(channels, height, width)
    C.image_write(0, image)
    C.release()

    array = image.pixels.reshape(height, width, channels)
    return array[:, :, 0] if channels == 1 else array


# ==============================================================================
# 1. BASIS IMAGES
# ==============================================================================

def plot_basis(db, algorithm, height, width, channels=1, n_show=16,
               filename=None, fig_dir=FIGURES_DIR):
    """
    Visualize top basis vectors (eigenfaces / fisherfaces / ICA basis).

    Args:
        db: trained or loaded Database
        algorithm: "PCA", "LDA" or "ICA"
        height, width, channels: image layout of a column
        n_show: số basis images hiển thị

    Returns:
        str: path of the saved figure
    """
    layer = db.layers.get(algorithm)
    if layer is None or getattr(layer, "W", None) is None:
        raise ValueError(f"{algorithm} basis is not stored in this database")
    ensure_fig_dir(fig_dir)
    filename = filename or f"{algorithm.lower()}_basis.png"

    W = layer.W
    n_show = min(n_show, W.cols)
    cols = 4
    rows = (n_show + cols - 1) // cols

    fig, axes = plt.subplots(rows, cols, figsize=(3*cols, 3*rows), squeeze=False)
    fig.suptitle(f"{algorithm} basis (top {n_show})", fontsize=16, fontweight='bold')

    for i in range(rows * cols):
        ax = axes[i // cols][i % cols]
        if i < n_show:
            face = column_to_array(W, i, height, width, channels)
            ax.imshow(face, cmap='gray' if channels == 1 else None)
            ax.set_title(f"{algorithm} {i+1}", fontsize=10)
        ax.axis('off')

    plt.tight_layout()
    filepath = os.path.join(fig_dir, filename)
    plt.savefig(filepath, dpi=150, bbox_inches='tight')
    plt.close()
    print(f"  [Saved] {filepath}", flush=True)
    return filepath


# ==============================================================================
# 2. MEAN FACE
# ==============================================================================

def plot_mean_face(db, height, width, channels=1, filename="mean_face.png",
                   fig_dir=FIGURES_DIR):
    """Visualize the database mean face."""
    ensure_fig_dir(fig_dir)

    face = column_to_array(db.mean_face, 0, height, width, channels)

    fig, ax = plt.subplots(1, 1, figsize=(4, 4))
    ax.imshow(face, cmap='gray' if channels == 1 else None)
    ax.set_title("Mean Face", fontsize=14, fontweight='bold')
    ax.axis('off')

    filepath = os.path.join(fig_dir, filename)
    plt.savefig(filepath, dpi=150, bbox_inches='tight')
    plt.close()
    print(f"  [Saved] {filepath}", flush=True)
    return filepath

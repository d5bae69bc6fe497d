"""
Feature Layers - Interface chung cho các thuật toán subspace.

Mỗi feature layer có cùng 5 operations (duck typing, không kế thừa):
    compute(X, entries, num_classes) → W (d × k) hoặc None
    project(X)                       → Y = Wᵀ · X
    save(stream) / load(stream)      → lưu / khôi phục đúng state cần cho project
    describe()                       → chuỗi mô tả (diagnostic)

Database tạo mỗi layer qua create_layer() và chỉ gọi compute / project.

Variants:
    identity - pass-through (baseline)
    pca      - Eigenfaces
    lda      - Fisherfaces
    ica      - Infomax ICA, Architecture I

Author: Mathematics for AI - Final Project
"""

from facerec.ica import ICALayer
from facerec.lda import LDALayer
from facerec.pca import PCALayer


class IdentityLayer:
    """
    Identity feature layer: features = raw (mean-removed) pixels.

    compute() không tạo ma trận đơn vị d × d (quá lớn) mà trả về None.
    """

    def compute(self, X, entries=None, num_classes=None):
        return None

    def project(self, X):
        return X.copy()

    def save(self, stream):
        pass

    def load(self, stream):
        pass

    def describe(self):
        return "Identity"


# ==============================================================================
# LAYER REGISTRY
# ==============================================================================

FEATURE_LAYERS = {
    "identity": IdentityLayer,
    "pca": PCALayer,
    "lda": LDALayer,
    "ica": ICALayer,
}


def create_layer(name, **kwargs):
    """
    Instantiate a feature layer by name.

    Raises:
        ValueError: unknown layer name
    """
    try:
        layer_class = FEATURE_LAYERS[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown feature layer {name!r}, expected one of {sorted(FEATURE_LAYERS)}"
        ) from None
    return layer_class(**kwargs)

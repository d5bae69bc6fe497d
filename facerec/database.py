"""
Database - Train, lưu/đọc và nhận diện khuôn mặt bằng nearest neighbor.

╔══════════════════════════════════════════════════════════════════════════╗
║  Empty ──train()──► Trained ──┐                                         ║
║    └────load()────► Loaded  ──┴──► recognize() / save()                 ║
╚══════════════════════════════════════════════════════════════════════════╝

Mỗi thuật toán là một feature layer (facerec.feature) tạo qua registry;
Database chỉ dùng contract compute / project của layer.

Training:
    1. Enumerate labelled images, build X (d × n), mỗi ảnh một cột
    2. mean_face = mean column of X;  X ← X - mean_face
    3. PCA (cần cho cả LDA/ICA) → W_pca,  P_pca = layer.project(X)
    4. LDA (nếu bật) → W_lda,  P_lda = layer.project(X)
    5. ICA (nếu bật) → W_ica,  P_ica = layer.project(X)
    6. IDENTITY (nếu bật) → P = X (baseline, không có basis)

Recognition (mỗi ảnh test T):
    T ← T - mean_face
    với mỗi thuật toán đang bật:
        P_test = layer.project(T)
        match  = nearest neighbor của P_test trong P (metric riêng)
    PCA/LDA/IDENTITY dùng L2, ICA dùng COS.

Artifacts:
    - Manifest (text): mỗi dòng "<class_id> <filename>"
    - Data (binary): mean_face, rồi theo thứ tự PCA, LDA, ICA: W_tr = Wᵀ, P;
      cuối cùng IDENTITY: chỉ P

Author: Mathematics for AI - Final Project
"""

from tqdm import tqdm

from facerec import config
from facerec.data_loader import (
    get_directory, get_directory_rec, get_image_matrix, is_same_class,
    rem_base_dir, ImageEntry,
)
from facerec.feature import create_layer
from facerec.image import Image
from facerec.linalg import mean_column, subtract, subtract_columns, transpose
from facerec.matrix import Matrix
from facerec.metrics import get_metric
from facerec.timing import timed

ALGORITHMS = ("PCA", "LDA", "ICA", "IDENTITY")

# layers built on top of the PCA basis
PCA_BASED = ("LDA", "ICA")


def nearest_neighbor(P, P_test, metric="L2"):
    """
    Index of the column of P closest to column vector P_test.

    Linear scan; khi bằng nhau, cột xuất hiện ĐẦU TIÊN được chọn.

    Args:
        P: Matrix (k × n) - training projections
        P_test: Matrix (k × 1)
        metric: "L1", "L2" or "COS"

    Returns:
        int: column index in P
    """
    _, dist_batch = get_metric(metric)
    dists = dist_batch(P, P_test)

    min_index = -1
    min_dist = None
    for j, dist in enumerate(dists):
        if min_index == -1 or dist < min_dist:
            min_index = j
            min_dist = dist

    return min_index


def _release_layer(layer):
    for attr in ("W", "D"):
        M = getattr(layer, attr, None)
        if M is not None:
            M.release()
            setattr(layer, attr, None)


class Database:
    """
    Face database: mean face + one feature layer and projection per algorithm.

    Attributes:
        enabled: {"PCA": bool, "LDA": bool, "ICA": bool, "IDENTITY": bool}
        layers: {name: feature layer} - every stored algorithm
        entries: list[ImageEntry] - column j of every P is entries[j]
        mean_face: Matrix (d × 1)
        P: {name: Matrix (k × n)} - projected training images
        num_images, num_dimensions, num_classes
        state: "empty", "trained" or "loaded"
    """

    def __init__(self, pca=True, lda=False, ica=False, identity=False,
                 pca_n1=None, lda_n1=None, lda_n2=None,
                 ica_layer=None, verbose=None):
        self.enabled = {
            "PCA": bool(pca),
            "LDA": bool(lda),
            "ICA": bool(ica),
            "IDENTITY": bool(identity),
        }
        self.verbose = config.VERBOSE if verbose is None else verbose

        layer_args = {
            "PCA": {"n1": pca_n1},
            "LDA": {"n1": lda_n1, "n2": lda_n2},
            "ICA": {},
            "IDENTITY": {},
        }
        self.layers = {}
        for name in self._stored_algorithms():
            if name == "ICA" and ica_layer is not None:
                self.layers[name] = ica_layer
            else:
                self.layers[name] = create_layer(name, **layer_args[name])

        self.entries = []
        self.mean_face = None
        self.P = {}
        self.num_images = 0
        self.num_dimensions = 0
        self.num_classes = 0
        self.state = "empty"

    # ==========================================================================
    # HELPERS
    # ==========================================================================

    def _log(self, message=""):
        if self.verbose:
            print(message, flush=True)

    def _stored_algorithms(self):
        """Algorithms whose projection is stored, in file order."""
        stored = []
        if self.enabled["PCA"] or self.enabled["LDA"] or self.enabled["ICA"]:
            stored.append("PCA")
        for name in ("LDA", "ICA", "IDENTITY"):
            if self.enabled[name]:
                stored.append(name)
        return stored

    @property
    def W_tr(self):
        """{name: Wᵀ (k × d)} for every stored algorithm that has a basis."""
        return {
            name: transpose(self.layers[name].W)
            for name in self.P
            if getattr(self.layers[name], "W", None) is not None
        }

    def release(self):
        """Free every owned matrix and the entries; back to the empty state."""
        if self.mean_face is not None:
            self.mean_face.release()
        for M in self.P.values():
            M.release()
        for layer in self.layers.values():
            _release_layer(layer)
        self.mean_face = None
        self.P = {}
        self.entries = []
        self.num_images = 0
        self.num_dimensions = 0
        self.num_classes = 0
        self.state = "empty"

    # ==========================================================================
    # TRAINING
    # ==========================================================================

    def train(self, path):
        """
        Train the database on the labelled images under `path`.

        Raises:
            FileNotFoundError: `path` is not a directory
            ValueError: no images, or images of different sizes
        """
        with timed("Training"):
            entries, num_classes = get_directory_rec(path)
            if not entries:
                raise ValueError(f"No training images found in {path}")

            # compute mean-subtracted image matrix X
            X = get_image_matrix(entries, verbose=self.verbose)

            self.release()
            self.entries = entries
            self.num_images = len(entries)
            self.num_classes = num_classes
            self.num_dimensions = X.rows
            self.mean_face = mean_column(X)
            subtract_columns(X, self.mean_face)

            self._log(f"\n  Training: {self.num_images} images, {self.num_classes} classes, "
                      f"{self.num_dimensions} dimensions")

            try:
                self._train_layers(X)
            except Exception:
                self.release()
                raise
            finally:
                X.release()

        self.state = "trained"
        return self

    def _train_layers(self, X):
        W_pca = None
        for name in self._stored_algorithms():
            layer = self.layers[name]
            kwargs = {}
            if name in PCA_BASED:
                kwargs["W_pca"] = W_pca
            if name == "ICA":
                kwargs["verbose"] = self.verbose

            self._log(f"  Computing {name} representation...")
            with timed(name):
                W = layer.compute(X, self.entries, self.num_classes, **kwargs)
                self.P[name] = layer.project(X)
            if name == "PCA":
                W_pca = W
            self._log(layer.describe())

    # ==========================================================================
    # SAVE / LOAD
    # ==========================================================================

    def save(self, path_tset, path_tdata):
        """
        Save the manifest (text) and the matrices (binary).

        Raises:
            ValueError: the database is empty
        """
        if self.state == "empty":
            raise ValueError("Cannot save an empty database")

        with open(path_tset, "w") as tset:
            for entry in self.entries:
                tset.write(f"{entry.ent_class} {entry.name}\n")

        W_tr = self.W_tr
        with open(path_tdata, "wb") as tdata:
            self.mean_face.fwrite(tdata)
            for name in self._stored_algorithms():
                if name in W_tr:
                    W_tr[name].fwrite(tdata)
                self.P[name].fwrite(tdata)
        for M in W_tr.values():
            M.release()

        self._log(f"  [Saved] {path_tset}, {path_tdata}")

    def load(self, path_tset, path_tdata):
        """
        Load a database written by save() with the same enabled algorithms.

        num_images / num_dimensions come from the matrix shapes.
        Không giữ lại state nào nếu đọc lỗi.

        Raises:
            FileNotFoundError: either file is missing
            EOFError: the data file is truncated
            ValueError: manifest has fewer lines than stored images, or the
                stored matrices have inconsistent shapes
        """
        stored = self._stored_algorithms()
        W_tr = {}
        P = {}
        with open(path_tdata, "rb") as tdata:
            mean_face = Matrix.fread(tdata)
            for name in stored:
                if name != "IDENTITY":
                    W_tr[name] = Matrix.fread(tdata)
                P[name] = Matrix.fread(tdata)

        num_images = P[stored[0]].cols if stored else 0
        for name in stored:
            k = W_tr[name].rows if name in W_tr else mean_face.rows
            if name in W_tr and W_tr[name].cols != mean_face.rows:
                raise ValueError(
                    f"{name} basis has {W_tr[name].cols} columns, "
                    f"expected {mean_face.rows}")
            if P[name].rows != k:
                raise ValueError(
                    f"{name} projection has {P[name].rows} rows, expected {k}")
            if P[name].cols != num_images:
                raise ValueError(
                    f"{name} projection has {P[name].cols} columns, "
                    f"expected {num_images}")

        entries = []
        with open(path_tset, "r") as tset:
            for line in tset:
                line = line.strip()
                if not line:
                    continue
                ent_class, name = line.split(maxsplit=1)
                entries.append(ImageEntry(name, int(ent_class)))

        if not stored:
            num_images = len(entries)
        if len(entries) < num_images:
            raise ValueError(
                f"Manifest lists {len(entries)} images, data has {num_images}")

        self.release()
        self.mean_face = mean_face
        for name, M in W_tr.items():
            self.layers[name].W = transpose(M)
            M.release()
        self.P = P
        self.entries = entries[:num_images]
        self.num_images = num_images
        self.num_dimensions = mean_face.rows
        self.num_classes = len({e.ent_class for e in self.entries})
        self.state = "loaded"
        return self

    # ==========================================================================
    # RECOGNITION
    # ==========================================================================

    def recognize(self, path):
        """
        Recognize every image under `path` with each enabled algorithm.

        Returns:
            dict: {algorithm: {metric, num_correct, num_tests, accuracy, matches}}
                - accuracy: percent correct
                - matches: list of (test image, matched training image)

        Raises:
            ValueError: the database is empty, or a test image has the wrong size
        """
        if self.state == "empty":
            raise ValueError("Database is empty: train or load it first")

        with timed("Recognition"):
            algorithms = [name for name in ALGORITHMS if self.enabled[name]]
            results = {
                name: {
                    "metric": config.ALGORITHM_METRICS[name],
                    "num_correct": 0,
                    "num_tests": 0,
                    "accuracy": 0.0,
                    "matches": [],
                }
                for name in algorithms
            }

            image_names = get_directory(path)
            iterator = image_names
            if self.verbose:
                iterator = tqdm(image_names, desc="  Recognizing")

            image = Image()
            T_i = Matrix.initialize(self.num_dimensions, 1)

            for test_name in iterator:
                # read the test image T_i
                image.read(test_name)
                T_i.image_read(0, image)
                subtract(T_i, self.mean_face)

                lines = [f"test image: '{rem_base_dir(test_name)}'"]

                for name in algorithms:
                    params = results[name]
                    P_test = self.layers[name].project(T_i)
                    rec_index = nearest_neighbor(self.P[name], P_test, params["metric"])
                    P_test.release()

                    rec_name = self.entries[rec_index].name
                    params["matches"].append((test_name, rec_name))
                    params["num_tests"] += 1
                    if is_same_class(rec_name, test_name):
                        params["num_correct"] += 1

                    lines.append(f"       {name}: '{rem_base_dir(rec_name)}'")

                if self.verbose:
                    tqdm.write("\n".join(lines) + "\n")

            T_i.release()

            for name in algorithms:
                params = results[name]
                total = params["num_tests"]
                params["accuracy"] = 100.0 * params["num_correct"] / total if total > 0 else 0.0
                if self.verbose:
                    print(f"{name}: {params['num_correct']} / {total} matched, "
                          f"{params['accuracy']:.2f}%", flush=True)
                else:
                    print(f"{params['accuracy']:.2f}", flush=True)

        return results

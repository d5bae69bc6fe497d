"""
Configuration parameters for the face recognition database.
All hyperparameters and paths are defined here for easy modification.
"""

import os

# ==============================================================================
# PATHS
# ==============================================================================
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
TRAIN_DATA_DIR = os.path.join(BASE_DIR, "train_data")
FIGURES_DIR = os.path.join(BASE_DIR, "results", "figures")

# Database artifacts: manifest (text) + matrices (binary)
TRAINING_SET_FILE = os.path.join(TRAIN_DATA_DIR, "training_set.dat")
TRAINING_DATA_FILE = os.path.join(TRAIN_DATA_DIR, "training_data.dat")

# Image files recognised by the directory loader
IMAGE_EXTENSIONS = (".ppm", ".pgm", ".png", ".jpg", ".jpeg", ".bmp")

# ==============================================================================
# PCA PARAMETERS
# ==============================================================================
PCA_N1 = -1                  # Number of components (<= 0 = keep all positive)
EIGEN_TOL = 1e-10            # Relative cutoff for "numerically positive" eigenvalues

# ==============================================================================
# LDA PARAMETERS
# ==============================================================================
LDA_N1 = -1                  # PCA dims before FLD (<= 0 = n - c)
LDA_N2 = -1                  # FLD dims (<= 0 = c - 1)

# ==============================================================================
# ICA PARAMETERS
# ==============================================================================
ICA_NUM_COMPONENTS = -1      # PCA dims fed to infomax (<= 0 = all positive)
ICA_MAX_ITERATIONS = 200     # Infomax sweeps over the data
ICA_STOP = 1e-6              # Stop when the squared weight change drops below
ICA_LEARNING_RATE = -1       # Infomax learning rate (<= 0 = 0.00065 / log(m))
ICA_BLOCK_SIZE = 0           # Samples per update (<= 0 = heuristic)

# ==============================================================================
# DISTANCE METRICS (per algorithm)
# ==============================================================================
ALGORITHM_METRICS = {
    "PCA": "L2",
    "LDA": "L2",
    "ICA": "COS",
    "IDENTITY": "L2",        # raw mean-removed pixels (baseline)
}

# ==============================================================================
# HARDWARE PARAMETERS
# ==============================================================================
USE_GPU = os.environ.get("FACEREC_USE_GPU", "0") == "1"

# ==============================================================================
# NUMERICS
# ==============================================================================
# True: singular inverse / negative sqrtm eigenvalue / zero-norm cosine raise
# NumericalError. False: NaN and garbage propagate like the legacy library.
CHECK_NUMERICS = True
SINGULAR_COND = 1e15         # cond(M) above this counts as singular

# ==============================================================================
# LOGGING
# ==============================================================================
VERBOSE = os.environ.get("FACEREC_VERBOSE", "1") == "1"

# ==============================================================================
# RANDOM SEED
# ==============================================================================
RANDOM_SEED = 42

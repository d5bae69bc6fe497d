"""
facerec - Subspace face recognition (PCA / LDA / ICA) trên một matrix kernel
chạy được trên CPU (numpy) hoặc GPU (CuPy).
"""

__version__ = "0.1.0"

"""
Compute Backends - Chiến lược CPU (numpy → BLAS/LAPACK) và GPU (CuPy → cuBLAS).

╔══════════════════════════════════════════════════════════════════════════╗
║  Backend được chọn MỘT LẦN cho cả process (lazy, lần gọi đầu tiên)      ║
║  Kernel gọi backend qua cùng một interface → kết quả giống nhau        ║
║  (trong sai số floating-point) trên cả hai backend                     ║
╚══════════════════════════════════════════════════════════════════════════╝

Interface (mỗi backend):
  - to_device(host) / to_host(device): copy giữa host và device memory
  - gemm(A, B):      C = 1·A·B + 0·C  (một lệnh gemm duy nhất)
  - eigh(M):         symmetric eigendecomposition, eigenvalues tăng dần
  - cholesky(M), solve(A, B), inv(M), singular_values(M)
  - allclose(A, B), isfinite(A)

Host/device synchronization là trách nhiệm của Matrix (push/pull);
backend chỉ làm việc với array đã nằm đúng chỗ.

Author: Mathematics for AI - Final Project
"""

import threading

import numpy as np

from facerec import config


# ==============================================================================
# 1. CPU BACKEND (numpy → BLAS / LAPACK)
# ==============================================================================

class CPUBackend:
    """numpy dispatches gemm to BLAS and eigh/inv/cholesky to LAPACK."""

    name = "CPU"
    is_gpu = False
    xp = np

    def to_device(self, host):
        return host

    def to_host(self, device):
        return device

    def gemm(self, a, b):
        return np.asfortranarray(np.dot(a, b))

    def eigh(self, a):
        w, v = np.linalg.eigh(a)
        return w, np.asfortranarray(v)

    def cholesky(self, a):
        return np.linalg.cholesky(a)

    def solve(self, a, b):
        return np.asfortranarray(np.linalg.solve(a, b))

    def inv(self, a):
        # gesv against the identity: LU factorization + explicit inverse
        return np.asfortranarray(np.linalg.inv(a))

    def singular_values(self, a):
        return np.linalg.svd(a, compute_uv=False)

    def allclose(self, a, b, rtol, atol):
        return bool(np.allclose(a, b, rtol=rtol, atol=atol))

    def all_finite(self, a):
        return bool(np.all(np.isfinite(a)))

    def describe(self):
        return f"CPU (numpy {np.__version__})"


# ==============================================================================
# 2. GPU BACKEND (CuPy → cuBLAS / cuSOLVER)
# ==============================================================================

class GPUBackend:
    """
    CuPy backend. Mọi lệnh đều synchronous đối với caller: kết quả được
    đồng bộ về host khi Matrix.pull() được gọi.

    The device and its cuBLAS handle are created once, here, and reused for
    the lifetime of the process.
    """

    name = "GPU"
    is_gpu = True

    def __init__(self, cp):
        self.xp = cp
        self.device = cp.cuda.Device(0)
        self.device.use()
        self.cublas_handle = self.device.cublas_handle

    def to_device(self, host):
        return self.xp.asarray(host, dtype=self.xp.float64, order="F")

    def to_host(self, device):
        return np.asfortranarray(self.xp.asnumpy(device))

    def _sync(self, result):
        self.xp.cuda.Stream.null.synchronize()
        return result

    def gemm(self, a, b):
        return self._sync(self.xp.asfortranarray(self.xp.matmul(a, b)))

    def eigh(self, a):
        w, v = self.xp.linalg.eigh(a)
        return self._sync((w, self.xp.asfortranarray(v)))

    def cholesky(self, a):
        return self._sync(self.xp.linalg.cholesky(a))

    def solve(self, a, b):
        return self._sync(self.xp.asfortranarray(self.xp.linalg.solve(a, b)))

    def inv(self, a):
        return self._sync(self.xp.asfortranarray(self.xp.linalg.inv(a)))

    def singular_values(self, a):
        return self.xp.asnumpy(self.xp.linalg.svd(a, compute_uv=False))

    def allclose(self, a, b, rtol, atol):
        return bool(self.xp.allclose(a, b, rtol=rtol, atol=atol))

    def all_finite(self, a):
        return bool(self.xp.all(self.xp.isfinite(a)))

    def describe(self):
        free, total = self.device.mem_info
        return (f"GPU (CuPy {self.xp.__version__}, "
                f"{free/1e9:.1f}/{total/1e9:.1f} GB free)")


# ==============================================================================
# 3. PROCESS-WIDE BACKEND (lazy init)
# ==============================================================================

_backend = None
_backend_lock = threading.Lock()


def _create_gpu_backend():
    """Try to bring up CuPy; return None when CUDA is not usable."""
    try:
        import cupy as cp
        # Test that cuBLAS actually works (not just import)
        _test = cp.asarray(np.array([1.0, 2.0]))
        _ = cp.dot(_test, _test)
        del _test
        if not cp.cuda.is_available():
            if config.VERBOSE:
                print("  [GPU] CUDA not available, using CPU", flush=True)
            return None
        return GPUBackend(cp)
    except (ImportError, RuntimeError) as e:
        if config.VERBOSE:
            print(f"  [GPU] GPU init failed ({e}), using CPU", flush=True)
        return None


def _create_backend(use_gpu):
    backend = _create_gpu_backend() if use_gpu else None
    if backend is None:
        backend = CPUBackend()
    if config.VERBOSE:
        print(f"  [Backend] {backend.describe()}", flush=True)
    return backend


def get_backend():
    """
    Return the process-wide backend, creating it on first use.

    The choice follows config.USE_GPU; if the GPU cannot be initialised the
    CPU backend is used instead.
    """
    global _backend
    if _backend is None:
        with _backend_lock:
            if _backend is None:
                _backend = _create_backend(config.USE_GPU)
    return _backend


def set_backend(name):
    """
    Force a backend ("cpu" or "gpu"). Meant for process start-up and tests;
    matrices created under a previous backend must not be reused.

    Raises:
        ValueError: unknown name, or "gpu" requested but unavailable
    """
    global _backend
    name = name.lower()
    with _backend_lock:
        if name == "cpu":
            _backend = CPUBackend()
        elif name == "gpu":
            backend = _create_gpu_backend()
            if backend is None:
                raise ValueError("GPU backend requested but CuPy/CUDA is unavailable")
            _backend = backend
        else:
            raise ValueError(f"Unknown backend: {name!r}")
    return _backend

"""
Matrix Core - Ma trận 2 chiều column-major, có thể mirror sang GPU.

╔══════════════════════════════════════════════════════════════════════════╗
║  Buffer: float64, column-major, element (i, j) tại offset i + j*rows    ║
║  Mỗi Matrix sở hữu riêng buffer của nó (không aliasing)                ║
║  GPU: host mirror + device mirror, đồng bộ TƯỜNG MINH bằng push/pull   ║
╚══════════════════════════════════════════════════════════════════════════╝

Host/device discipline:
    - Mọi thay đổi phía host (setitem, image_read, elementwise ops...) đánh
      dấu host "dirty" → push() trước khi một lệnh GPU đọc matrix.
    - Kết quả của lệnh GPU nằm trên device → pull() trước khi host đọc.
    - Trên CPU backend, push/pull là no-op.

File formats:
    - Binary: <int32 rows><int32 cols><rows*cols float64, column-major>
      (little-endian)
    - Text:   "rows cols" header, sau đó rows dòng, mỗi dòng cols giá trị (%g)

Author: Mathematics for AI - Final Project
"""

import struct

import numpy as np

from facerec.backend import get_backend

BINARY_HEADER_FORMAT = "<ii"            # rows(int32), cols(int32)
BINARY_HEADER_SIZE = struct.calcsize(BINARY_HEADER_FORMAT)  # = 8 bytes
BINARY_DTYPE = np.dtype("<f8")


def _check_shape(rows, cols):
    if rows <= 0 or cols <= 0:
        raise ValueError(f"Matrix dimensions must be positive, got {rows}x{cols}")


class Matrix:
    """
    Dense float64 matrix stored column-major.

    Attributes:
        rows, cols: dimensions
        data: flat column-major view of the host buffer (length rows*cols)
    """

    def __init__(self, rows, cols, host=None):
        _check_shape(rows, cols)
        self.rows = rows
        self.cols = cols

        if host is None:
            host = np.empty((rows, cols), dtype=np.float64, order="F")
        self._host = host
        self._device = None

        # host newer than device / device newer than host
        self._host_dirty = True
        self._device_dirty = False

    # ==========================================================================
    # CONSTRUCTION
    # ==========================================================================

    @classmethod
    def initialize(cls, rows, cols):
        """Allocate a matrix with uninitialized content."""
        return cls(rows, cols)

    @classmethod
    def zeros(cls, rows, cols):
        _check_shape(rows, cols)
        return cls(rows, cols, np.zeros((rows, cols), dtype=np.float64, order="F"))

    @classmethod
    def ones(cls, rows, cols):
        _check_shape(rows, cols)
        return cls(rows, cols, np.ones((rows, cols), dtype=np.float64, order="F"))

    @classmethod
    def identity(cls, rows):
        _check_shape(rows, rows)
        return cls(rows, rows, np.asfortranarray(np.eye(rows, dtype=np.float64)))

    @classmethod
    def random(cls, rows, cols, seed=None):
        """Standard normal entries (like MATLAB randn)."""
        _check_shape(rows, cols)
        rng = np.random.RandomState(seed)
        return cls(rows, cols, np.asfortranarray(rng.randn(rows, cols)))

    @classmethod
    def from_array(cls, array):
        """Deep copy of a 2-D array-like (row index first)."""
        array = np.array(array, dtype=np.float64, order="F", ndmin=2)
        if array.ndim != 2:
            raise ValueError(f"Expected a 2-D array, got {array.ndim} dimensions")
        return cls(array.shape[0], array.shape[1], array)

    @classmethod
    def from_rows(cls, rows):
        """Build from nested row lists, e.g. [[1, 2], [3, 4]]."""
        return cls.from_array(rows)

    @classmethod
    def _from_backend(cls, array):
        """Wrap an array produced by the active backend (host or device)."""
        backend = get_backend()
        rows, cols = array.shape
        if not backend.is_gpu:
            return cls(rows, cols, np.asfortranarray(array))

        M = cls(rows, cols)
        M._device = array
        M._host_dirty = False
        M._device_dirty = True
        return M

    # ==========================================================================
    # HOST / DEVICE SYNCHRONIZATION
    # ==========================================================================

    def _check_alive(self):
        if self._host is None:
            raise ValueError("Matrix has been released")

    def push(self):
        """Copy host → device if the host side changed since the last push."""
        self._check_alive()
        backend = get_backend()
        if not backend.is_gpu:
            return
        if self._device_dirty:
            # device holds the newest copy already
            return
        if self._device is None or self._host_dirty:
            self._device = backend.to_device(self._host)
            self._host_dirty = False

    def pull(self):
        """Copy device → host if a GPU operation produced newer data."""
        self._check_alive()
        if not self._device_dirty:
            return
        backend = get_backend()
        self._host[...] = backend.to_host(self._device)
        self._device_dirty = False

    def host(self, write=False):
        """
        Host array (rows × cols, Fortran order), synchronized with device.

        Args:
            write: caller will mutate the array → mark host side dirty
        """
        self.pull()
        if write:
            self._host_dirty = True
        return self._host

    def device(self):
        """Array on the active backend (pushes first on GPU)."""
        backend = get_backend()
        if not backend.is_gpu:
            return self.host()
        self.push()
        return self._device

    def release(self):
        """Free host and device buffers together."""
        self._host = None
        self._device = None
        self._host_dirty = False
        self._device_dirty = False

    # ==========================================================================
    # ELEMENT ACCESS
    # ==========================================================================

    @property
    def shape(self):
        return (self.rows, self.cols)

    @property
    def data(self):
        """
        Flat column-major read-only view: data[i + j*rows] == M[i, j].

        Writes go through __setitem__ or host(write=True), which mark the
        host side dirty.
        """
        view = self.host().reshape(-1, order="F")
        view.flags.writeable = False
        return view

    def __getitem__(self, index):
        i, j = index
        return float(self.host()[i, j])

    def __setitem__(self, index, value):
        i, j = index
        self.host(write=True)[i, j] = value

    def to_numpy(self):
        """Copy of the content as a (rows, cols) numpy array."""
        return np.array(self.host(), copy=True)

    def column(self, j):
        return np.array(self.host()[:, j], copy=True)

    def __repr__(self):
        return f"Matrix({self.rows}x{self.cols})"

    # ==========================================================================
    # COPY
    # ==========================================================================

    def copy(self):
        return self.copy_columns(0, self.cols)

    def copy_columns(self, begin, end):
        """
        Copy columns [begin, end).

        Raises:
            ValueError: unless 0 <= begin < end <= cols
        """
        if not (0 <= begin < end <= self.cols):
            raise ValueError(
                f"Invalid column range [{begin}, {end}) for {self.cols} columns")
        host = np.array(self.host()[:, begin:end], dtype=np.float64, order="F")
        return Matrix(self.rows, end - begin, host)

    # ==========================================================================
    # TEXT I/O
    # ==========================================================================

    def fprint(self, stream):
        """Write in text format: header, then values row by row."""
        host = self.host()
        stream.write(f"{self.rows} {self.cols}\n")
        for i in range(self.rows):
            stream.write("".join("%g " % v for v in host[i]))
            stream.write("\n")

    @classmethod
    def fscan(cls, stream):
        """Read a matrix written by fprint()."""
        header = stream.readline().split()
        if len(header) < 2:
            raise EOFError("Missing matrix header")
        rows, cols = int(header[0]), int(header[1])

        values = []
        while len(values) < rows * cols:
            line = stream.readline()
            if not line:
                raise EOFError(
                    f"Truncated matrix: expected {rows * cols} values, got {len(values)}")
            values.extend(float(tok) for tok in line.split())

        host = np.array(values[:rows * cols], dtype=np.float64).reshape(rows, cols)
        return cls(rows, cols, np.asfortranarray(host))

    # ==========================================================================
    # BINARY I/O
    # ==========================================================================

    def fwrite(self, stream):
        """Write in binary format: int32 rows, int32 cols, column-major doubles."""
        stream.write(struct.pack(BINARY_HEADER_FORMAT, self.rows, self.cols))
        stream.write(self.host().astype(BINARY_DTYPE).tobytes(order="F"))

    @classmethod
    def fread(cls, stream):
        """
        Read a matrix written by fwrite().

        Raises:
            EOFError: stream ends before the header or data is complete
            ValueError: header has non-positive dimensions
        """
        header = stream.read(BINARY_HEADER_SIZE)
        if len(header) < BINARY_HEADER_SIZE:
            raise EOFError("Truncated matrix header")
        rows, cols = struct.unpack(BINARY_HEADER_FORMAT, header)
        _check_shape(rows, cols)

        n_bytes = rows * cols * BINARY_DTYPE.itemsize
        payload = stream.read(n_bytes)
        if len(payload) < n_bytes:
            raise EOFError(
                f"Truncated matrix data: expected {n_bytes} bytes, got {len(payload)}")

        host = np.frombuffer(payload, dtype=BINARY_DTYPE).reshape((rows, cols), order="F")
        return cls(rows, cols, np.array(host, dtype=np.float64, order="F"))

    # ==========================================================================
    # IMAGE COLUMNS
    # ==========================================================================

    def image_read(self, col, image):
        """
        Load an image's pixels into column `col`.

        Raises:
            ValueError: rows != channels * height * width
        """
        if self.rows != image.channels * image.height * image.width:
            raise ValueError(
                f"Image size {image.channels}x{image.height}x{image.width} "
                f"does not match matrix rows {self.rows}")
        self.host(write=True)[:, col] = image.pixels

    def image_write(self, col, image):
        """Store column `col` into an image's pixel buffer (uint8)."""
        if self.rows != image.channels * image.height * image.width:
            raise ValueError(
                f"Image size {image.channels}x{image.height}x{image.width} "
                f"does not match matrix rows {self.rows}")
        column = np.clip(self.host()[:, col], 0, 255)
        image.pixels[:] = column.astype(np.uint8)

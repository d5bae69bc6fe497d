"""
Image - Pixel buffer (channels × height × width) đọc/ghi bằng PIL.

Pixel layout: row-major, channels interleaved (giống PPM):
    pixels[(y * width + x) * channels + c]

Author: Mathematics for AI - Final Project
"""

import numpy as np
from PIL import Image as PILImage


class Image:
    """
    8-bit image buffer.

    Attributes:
        channels: 1 (grayscale) or 3 (RGB)
        height, width: dimensions
        pixels: np.ndarray shape (channels*height*width,), dtype uint8
    """

    def __init__(self, channels=0, height=0, width=0):
        self.channels = channels
        self.height = height
        self.width = width
        self.pixels = np.zeros(channels * height * width, dtype=np.uint8)

    @property
    def size(self):
        return self.channels * self.height * self.width

    def read(self, path):
        """
        Decode an image file into this buffer.

        Grayscale modes stay 1-channel, everything else is converted to RGB.
        """
        with PILImage.open(path) as img:
            if img.mode in ("L", "1", "I", "I;16", "F"):
                img = img.convert("L")
            else:
                img = img.convert("RGB")
            array = np.array(img, dtype=np.uint8)

        if array.ndim == 2:
            array = array[:, :, np.newaxis]

        self.height, self.width, self.channels = array.shape
        self.pixels = array.reshape(-1).copy()
        return self

    def write(self, path):
        """Encode the buffer to `path` (format from the file extension)."""
        array = self.pixels.reshape(self.height, self.width, self.channels)
        if self.channels == 1:
            img = PILImage.fromarray(np.ascontiguousarray(array[:, :, 0]))
        else:
            img = PILImage.fromarray(array)
        img.save(path)

    @classmethod
    def from_array(cls, array):
        """Build from an (H, W) or (H, W, C) uint8 array."""
        array = np.asarray(array, dtype=np.uint8)
        if array.ndim == 2:
            array = array[:, :, np.newaxis]
        image = cls(array.shape[2], array.shape[0], array.shape[1])
        image.pixels = array.reshape(-1).copy()
        return image

    def __repr__(self):
        return f"Image({self.channels}x{self.height}x{self.width})"


def image_read(path):
    return Image().read(path)

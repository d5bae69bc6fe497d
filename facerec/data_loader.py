"""
Data Loader - Duyệt thư mục ảnh và xây dựng image matrix.

Quy ước tên file: "{class}_{index}.ext", ví dụ:
    s01_1.pgm, s01_2.pgm, s02_1.pgm, ...
Class của một ảnh = phần tên file trước dấu "_" đầu tiên.

Image matrix:
    - Kích thước m × n: m = số pixel mỗi ảnh, n = số ảnh
    - Mỗi ảnh là MỘT cột; tất cả ảnh phải có cùng kích thước

Author: Mathematics for AI - Final Project
"""

import os
from dataclasses import dataclass

from tqdm import tqdm

from facerec import config
from facerec.image import Image
from facerec.matrix import Matrix


@dataclass
class ImageEntry:
    """A training image: file path and class id."""
    name: str
    ent_class: int


# ==============================================================================
# 1. FILENAME CONVENTION
# ==============================================================================

def rem_base_dir(path):
    """Strip the directory part of a path."""
    return os.path.basename(path)


def get_class_name(path):
    """Class name from "{class}_{index}.ext"."""
    return rem_base_dir(path).split("_", 1)[0]


def is_same_class(name1, name2):
    """Hai ảnh cùng class nếu prefix trước "_" giống nhau."""
    return get_class_name(name1) == get_class_name(name2)


# ==============================================================================
# 2. DIRECTORY ENUMERATION
# ==============================================================================

def _is_image_file(filename):
    return filename.lower().endswith(config.IMAGE_EXTENSIONS)


def get_directory(path):
    """
    List image files under `path` (recursive), sorted.

    Raises:
        FileNotFoundError: path is not a directory
    """
    if not os.path.isdir(path):
        raise FileNotFoundError(f"Image directory not found: {path}")

    names = []
    for root, dirs, files in os.walk(path):
        dirs.sort()
        for filename in sorted(files):
            if _is_image_file(filename):
                names.append(os.path.join(root, filename))
    return sorted(names)


def get_directory_rec(path):
    """
    List labelled images under `path`.

    Class ids được gán 0, 1, 2, ... theo thứ tự class name xuất hiện
    (file đã sort).

    Returns:
        tuple: (entries, num_classes)
            - entries: list[ImageEntry], ordered like get_directory()
            - num_classes: number of distinct class names
    """
    names = get_directory(path)

    class_ids = {}
    entries = []
    for name in names:
        class_name = get_class_name(name)
        if class_name not in class_ids:
            class_ids[class_name] = len(class_ids)
        entries.append(ImageEntry(name, class_ids[class_name]))

    return entries, len(class_ids)


# ==============================================================================
# 3. IMAGE MATRIX
# ==============================================================================

def get_image_matrix(entries, verbose=None):
    """
    Map a collection of images to column vectors.

    Kích thước ảnh lấy từ ảnh đầu tiên; ảnh khác kích thước → ValueError.

    Args:
        entries: list[ImageEntry] (or plain paths)
        verbose: show a progress bar (default config.VERBOSE)

    Returns:
        Matrix (channels*height*width × len(entries))
    """
    if not entries:
        raise ValueError("No images to load")
    if verbose is None:
        verbose = config.VERBOSE

    names = [e.name if isinstance(e, ImageEntry) else e for e in entries]

    image = Image().read(names[0])
    T = Matrix.initialize(image.size, len(names))
    T.image_read(0, image)

    iterator = range(1, len(names))
    if verbose:
        iterator = tqdm(iterator, desc="  Loading images")

    for i in iterator:
        image.read(names[i])
        T.image_read(i, image)

    return T

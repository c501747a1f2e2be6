"""Sparse files that stand in for disks on a node."""

from __future__ import annotations

import hashlib
import logging
import math
import os
import posixpath
import re

from nodedisk.blockdevice import SPARSE_BLOCK_DEVICE_TYPE
from nodedisk.deviceinfo import DeviceInfo

logger = logging.getLogger(__name__)

# Directory in which sparse files are created; no files are made when unset.
ENV_SPARSE_FILE_DIR = "SPARSE_FILE_DIR"
# Size in bytes of each sparse file.
ENV_SPARSE_FILE_SIZE = "SPARSE_FILE_SIZE"
# Number of sparse files to create.
ENV_SPARSE_FILE_COUNT = "SPARSE_FILE_COUNT"

SPARSE_FILE_NAME = "ndm-sparse.img"
SPARSE_FILE_DEFAULT_SIZE = 1073741824
SPARSE_FILE_MIN_SIZE = 1073741824
SPARSE_FILE_DEFAULT_COUNT = "1"
SPARSE_BLOCK_DEVICE_PREFIX = "sparse-"

_INTEGER = re.compile(r"[+-]?[0-9]+")


def get_sparse_file_dir() -> str:
    """Return the sparse file directory, or "" if unset or not a directory."""
    sparse_file_dir = os.environ.get(ENV_SPARSE_FILE_DIR, "")
    if not sparse_file_dir:
        return ""
    if not os.path.isdir(sparse_file_dir):
        logger.info("Specified directory doesnt exist: %s", sparse_file_dir)
        return ""
    return sparse_file_dir


def get_sparse_file_count() -> int:
    """Return the number of sparse files to create, or 0 if the value is invalid."""
    count_text = os.environ.get(ENV_SPARSE_FILE_COUNT, "") or SPARSE_FILE_DEFAULT_COUNT
    if not _INTEGER.fullmatch(count_text):
        logger.info("Error converting sparse file count: %s", count_text)
        return 0
    return int(count_text)


def get_sparse_file_size() -> int:
    """Return the sparse file size in bytes, or 0 if the value is invalid.

    Sizes below the minimum are raised to the minimum.
    """
    size_text = os.environ.get(ENV_SPARSE_FILE_SIZE, "")
    if not size_text:
        logger.info("No size was specified. Using default size: %d", SPARSE_FILE_DEFAULT_SIZE)
        return SPARSE_FILE_DEFAULT_SIZE
    try:
        if size_text != size_text.strip() or "_" in size_text:
            raise ValueError(size_text)
        size_value = float(size_text)
        if not math.isfinite(size_value):
            raise ValueError(size_text)
    except ValueError:
        logger.error("Error converting sparse file size: %s", size_text)
        return 0
    size = int(size_value)
    if size < SPARSE_FILE_MIN_SIZE:
        logger.info(
            "%s is less than minimum required. Setting the size to: %d",
            size_text,
            SPARSE_FILE_MIN_SIZE,
        )
        return SPARSE_FILE_MIN_SIZE
    return size


def check_and_create_sparse_file(sparse_file: str, sparse_file_size: int) -> None:
    """Reuse an existing sparse file, or create one of the given size."""
    try:
        os.stat(sparse_file)
    except OSError as err:
        logger.info("Check for existing file returned error: %s", err)
        logger.info("Creating a new Sparse file: %s", sparse_file)
        with open(sparse_file, "wb") as handle:
            handle.truncate(sparse_file_size)
    else:
        logger.info("Sparse file already exists: %s", os.path.basename(sparse_file))


def get_sparse_block_device_uuid(hostname: str, sparse_file: str) -> str:
    """Return the fixed UUID of a sparse file on a given host."""
    digest = hashlib.md5((hostname + sparse_file).encode("utf-8")).hexdigest()
    return SPARSE_BLOCK_DEVICE_PREFIX + digest


def get_active_sparse_block_devices_uuid(hostname: str) -> list[str]:
    """Return the UUIDs of the sparse files present in the sparse directory."""
    location = get_sparse_file_dir()
    try:
        names = sorted(entry.name for entry in os.scandir(location))
    except OSError as err:
        logger.error("Failed to read sparse file names : %s", err)
        return []
    return [
        get_sparse_block_device_uuid(
            hostname, posixpath.normpath(posixpath.join(location, name))
        )
        for name in names
        if name.endswith(SPARSE_FILE_NAME)
    ]


def sparse_device_info(
    hostname: str, node_attributes: dict[str, str], sparse_file: str
) -> DeviceInfo:
    """Describe an existing sparse file as a device; raise OSError if it is missing."""
    size = os.stat(sparse_file).st_size
    return DeviceInfo(
        uuid=get_sparse_block_device_uuid(hostname, sparse_file),
        node_attributes=dict(node_attributes),
        device_type=SPARSE_BLOCK_DEVICE_TYPE,
        path=sparse_file,
        capacity=size,
    )
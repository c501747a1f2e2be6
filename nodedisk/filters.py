"""Built-in filters deciding which block devices the daemon manages."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Callable, Iterable, Sequence

from nodedisk.blockdevice import BlockDevice
from nodedisk.controller import Controller
from nodedisk.ndmconfig import FilterConfig
from nodedisk.plugins import Filter, FilterInterface

logger = logging.getLogger(__name__)

DEFAULT_ENABLED = True
DEFAULT_DISABLED = False

OS_DISK_EXCLUDE_FILTER_KEY = "os-disk-exclude-filter"
OS_DISK_EXCLUDE_FILTER_NAME = "os disk exclude filter"
DEFAULT_MOUNT_POINTS = ("/", "/etc/hosts")
DEFAULT_MOUNT_FILE_PATH = "/proc/self/mounts"
# The host's mount table as mounted inside the container.
HOST_MOUNT_FILE_PATH = "/host/proc/1/mounts"
DEFAULT_SYS_BLOCK_ROOT = "/sys/class/block"

PATH_FILTER_KEY = "path-filter"
PATH_FILTER_NAME = "path filter"
DEFAULT_INCLUDE_PATHS = ""
DEFAULT_EXCLUDE_PATHS = "loop"

VENDOR_FILTER_KEY = "vendor-filter"
VENDOR_FILTER_NAME = "vendor filter"
DEFAULT_INCLUDE_VENDORS = ""
DEFAULT_EXCLUDE_VENDORS = ""

_TRUTHY_VALUES = frozenset({"true", "yes", "1", "on"})
_OCTAL_ESCAPE = re.compile(r"\\([0-7]{3})")
_ENDS_WITH_NUMBER = re.compile(r".+[0-9]+\Z", re.DOTALL)


def _is_truthy(value: str) -> bool:
    return value.strip().lower() in _TRUTHY_VALUES


def _split_list(value: str) -> list[str]:
    return value.split(",") if value else []


def _matches_any_ignoring_case(keywords: Iterable[str], text: str) -> bool:
    lowered = text.lower()
    return any(keyword.lower() in lowered for keyword in keywords)


def _contains_ignoring_case(values: Iterable[str], text: str) -> bool:
    lowered = text.lower()
    return any(value.lower() == lowered for value in values)


def _unescape_mount_field(text: str) -> str:
    return _OCTAL_ESCAPE.sub(lambda m: chr(int(m.group(1), 8)), text)


def _find_config(controller: Controller, key: str) -> FilterConfig | None:
    if controller.ndm_config is None:
        return None
    return next(
        (config for config in controller.ndm_config.filter_configs if config.key == key),
        None,
    )


def disk_path_for_mount_point(
    mount_file_path: str,
    mount_point: str,
    sys_block_root: str = DEFAULT_SYS_BLOCK_ROOT,
) -> str:
    """Return the /dev path of the disk holding a mount point.

    When the mounted device is a partition, its parent disk is returned.
    Raises OSError if the mount file cannot be read and LookupError if the
    mount point is not backed by a device.
    """
    with open(mount_file_path, encoding="utf-8") as handle:
        lines = handle.read().splitlines()
    for line in lines:
        fields = line.split()
        if len(fields) < 2:
            continue
        device = _unescape_mount_field(fields[0])
        if _unescape_mount_field(fields[1]) != mount_point or not device.startswith("/"):
            continue
        name = os.path.basename(os.path.realpath(device))
        sys_entry = os.path.join(sys_block_root, name)
        if os.path.exists(os.path.join(sys_entry, "partition")):
            name = os.path.basename(os.path.dirname(os.path.realpath(sys_entry)))
        return "/dev/" + name
    raise LookupError(f"no device is mounted at {mount_point} in {mount_file_path}")


class OsDiskExcludeFilter(FilterInterface):
    """Excludes the disk holding the operating system and its partitions."""

    def __init__(
        self,
        mount_points: Sequence[str] = DEFAULT_MOUNT_POINTS,
        mount_file_paths: Sequence[str] = (HOST_MOUNT_FILE_PATH, DEFAULT_MOUNT_FILE_PATH),
        sys_block_root: str = DEFAULT_SYS_BLOCK_ROOT,
        exclude_dev_path: str = "",
    ) -> None:
        self.mount_points = list(mount_points)
        self.mount_file_paths = list(mount_file_paths)
        self.sys_block_root = sys_block_root
        self.exclude_dev_path = exclude_dev_path

    def start(self) -> None:
        """Find the OS disk from the first mount table that names one."""
        for mount_file_path in self.mount_file_paths:
            for mount_point in self.mount_points:
                try:
                    self.exclude_dev_path = disk_path_for_mount_point(
                        mount_file_path, mount_point, self.sys_block_root
                    )
                except (OSError, LookupError) as err:
                    logger.error("%s", err)
                    continue
                return
        logger.error("unable to apply os disk filter")

    def include(self, block_device: BlockDevice) -> bool:
        """Every device is included."""
        return True

    def exclude(self, block_device: BlockDevice) -> bool:
        """Return True unless the device is the OS disk or one of its partitions."""
        if _ENDS_WITH_NUMBER.search(self.exclude_dev_path):
            # loop0, loop0p1, nvme0n1p1
            partition_pattern = r"(?:p[0-9]+)?\Z"
        else:
            # sda, sda1
            partition_pattern = r"[0-9]*\Z"
        pattern = "^" + re.escape(self.exclude_dev_path) + partition_pattern
        dev_path = block_device.identifier.dev_path
        logger.info("applying os-filter regex %s on %s", pattern, dev_path)
        return re.search(pattern, dev_path) is None


class PathFilter(FilterInterface):
    """Selects devices by keywords found in their device path."""

    def __init__(
        self, include: str = DEFAULT_INCLUDE_PATHS, exclude: str = DEFAULT_EXCLUDE_PATHS
    ) -> None:
        self.include_config = include
        self.exclude_config = exclude
        self.include_paths: list[str] = []
        self.exclude_paths: list[str] = []

    def start(self) -> None:
        """Split the comma separated keywords into lists."""
        self.include_paths = _split_list(self.include_config)
        self.exclude_paths = _split_list(self.exclude_config)

    def include(self, block_device: BlockDevice) -> bool:
        """Return True if no keywords are set or the path contains one."""
        if not self.include_paths:
            return True
        return _matches_any_ignoring_case(self.include_paths, block_device.identifier.dev_path)

    def exclude(self, block_device: BlockDevice) -> bool:
        """Return True if no keywords are set or the path contains none."""
        if not self.exclude_paths:
            return True
        return not _matches_any_ignoring_case(
            self.exclude_paths, block_device.identifier.dev_path
        )


class VendorFilter(FilterInterface):
    """Selects devices by their vendor name."""

    def __init__(
        self, include: str = DEFAULT_INCLUDE_VENDORS, exclude: str = DEFAULT_EXCLUDE_VENDORS
    ) -> None:
        self.include_config = include
        self.exclude_config = exclude
        self.include_vendors: list[str] = []
        self.exclude_vendors: list[str] = []

    def start(self) -> None:
        """Split the comma separated vendor names into lists."""
        self.include_vendors = _split_list(self.include_config)
        self.exclude_vendors = _split_list(self.exclude_config)

    def include(self, block_device: BlockDevice) -> bool:
        """Return True if no vendors are set or the device's vendor is one of them."""
        if not self.include_vendors:
            return True
        return _contains_ignoring_case(
            self.include_vendors, block_device.device_attributes.vendor
        )

    def exclude(self, block_device: BlockDevice) -> bool:
        """Return True if no vendors are set or the device's vendor is none of them."""
        if not self.exclude_vendors:
            return True
        return not _contains_ignoring_case(
            self.exclude_vendors, block_device.device_attributes.vendor
        )


def register_filter(
    controller: Controller, name: str, state: bool, interface: FilterInterface
) -> Filter:
    """Add a filter to the controller and start it if it is enabled."""
    new_filter = Filter(name=name, state=state, interface=interface)
    controller.add_new_filter(new_filter)
    if state:
        interface.start()
    return new_filter


def register_os_disk_exclude_filter(controller: Controller | None) -> Filter | None:
    """Register the OS disk exclude filter, configured from the controller."""
    if controller is None:
        return None
    name, state, mount_points = OS_DISK_EXCLUDE_FILTER_NAME, DEFAULT_ENABLED, DEFAULT_MOUNT_POINTS
    config = _find_config(controller, OS_DISK_EXCLUDE_FILTER_KEY)
    if config is not None:
        name, state = config.name, _is_truthy(config.state)
        mount_points = tuple(config.exclude.split(","))
    return register_filter(
        controller, name, state, OsDiskExcludeFilter(mount_points=mount_points)
    )


def register_path_filter(controller: Controller | None) -> Filter | None:
    """Register the path filter, configured from the controller."""
    if controller is None:
        return None
    name, state = PATH_FILTER_NAME, DEFAULT_ENABLED
    include, exclude = DEFAULT_INCLUDE_PATHS, DEFAULT_EXCLUDE_PATHS
    config = _find_config(controller, PATH_FILTER_KEY)
    if config is not None:
        name, state = config.name, _is_truthy(config.state)
        include, exclude = config.include, config.exclude
    return register_filter(controller, name, state, PathFilter(include, exclude))


def register_vendor_filter(controller: Controller | None) -> Filter | None:
    """Register the vendor filter, configured from the controller."""
    if controller is None:
        return None
    name, state = VENDOR_FILTER_NAME, DEFAULT_ENABLED
    include, exclude = DEFAULT_INCLUDE_VENDORS, DEFAULT_EXCLUDE_VENDORS
    config = _find_config(controller, VENDOR_FILTER_KEY)
    if config is not None:
        name, state = config.name, _is_truthy(config.state)
        include, exclude = config.include, config.exclude
    return register_filter(controller, name, state, VendorFilter(include, exclude))


REGISTERED_FILTERS: tuple[Callable[[Controller | None], Filter | None], ...] = (
    register_os_disk_exclude_filter,
    register_vendor_filter,
    register_path_filter,
)


def start(
    registered_filters: Iterable[Callable[[Controller | None], object]],
    controller: Controller | None,
) -> None:
    """Run every filter registration function against the controller."""
    logger.info("registering filters")
    for register in registered_filters:
        register(controller)
"""Filters and probes that the controller runs over block devices."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from nodedisk.blockdevice import BlockDevice


class FilterInterface(ABC):
    """A filter deciding whether a block device is to be processed."""

    @abstractmethod
    def start(self) -> None:
        """Prepare the filter before use."""

    @abstractmethod
    def include(self, block_device: BlockDevice) -> bool:
        """Return True if the device matches the include rules."""

    @abstractmethod
    def exclude(self, block_device: BlockDevice) -> bool:
        """Return True if the device does not match the exclude rules."""


class ProbeInterface(ABC):
    """A probe filling in details of a block device."""

    @abstractmethod
    def start(self) -> None:
        """Prepare the probe before use."""

    @abstractmethod
    def fill_block_device_details(self, block_device: BlockDevice) -> None:
        """Fill in the details this probe knows about the device."""


@dataclass
class Filter:
    """A registered filter with its name and whether it is enabled."""

    name: str
    state: bool
    interface: FilterInterface

    def apply_filter(self, block_device: BlockDevice) -> bool:
        """Return True if the device passes both include and exclude rules."""
        return self.interface.include(block_device) and self.interface.exclude(
            block_device
        )

    def start(self) -> None:
        """Start the underlying filter."""
        self.interface.start()


@dataclass
class Probe:
    """A registered probe; probes with a lower priority run first."""

    name: str
    state: bool
    interface: ProbeInterface
    priority: int = 0

    def start(self) -> None:
        """Start the underlying probe."""
        self.interface.start()

    def fill_block_device_details(self, block_device: BlockDevice) -> None:
        """Let the underlying probe fill in device details."""
        self.interface.fill_block_device_details(block_device)


@dataclass
class EventMessage:
    """An event such as attach or detach, with the devices it concerns."""

    action: str
    devices: list[BlockDevice] = field(default_factory=list)
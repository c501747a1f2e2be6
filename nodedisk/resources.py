"""BlockDevice resources as stored in the cluster."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field


@dataclass
class TypeMeta:
    """Kind and API version of a resource."""

    kind: str = ""
    api_version: str = ""


@dataclass
class ObjectMeta:
    """Name, namespace, labels and annotations of a resource."""

    name: str = ""
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    resource_version: str = ""


@dataclass
class DeviceCapacity:
    """Size of a device and its sector sizes, in bytes."""

    storage: int = 0
    physical_sector_size: int = 0
    logical_sector_size: int = 0


@dataclass
class DeviceDetails:
    """Static details of a device such as model, serial and vendor."""

    device_type: str = ""
    drive_type: str = ""
    logical_block_size: int = 0
    physical_block_size: int = 0
    hardware_sector_size: int = 0
    model: str = ""
    compliance: str = ""
    serial: str = ""
    vendor: str = ""
    firmware_revision: str = ""


@dataclass
class DeviceDevLink:
    """One kind of soft link pointing to a device."""

    kind: str = ""
    links: list[str] = field(default_factory=list)


@dataclass
class FileSystemInfo:
    """Filesystem type and mount point of a device."""

    fs_type: str = ""
    mountpoint: str = ""


@dataclass
class NodeAttribute:
    """The node a device is attached to."""

    node_name: str = ""


@dataclass
class DeviceSpec:
    """Desired description of a block device."""

    node_attributes: NodeAttribute = field(default_factory=NodeAttribute)
    path: str = ""
    details: DeviceDetails = field(default_factory=DeviceDetails)
    capacity: DeviceCapacity = field(default_factory=DeviceCapacity)
    devlinks: list[DeviceDevLink] = field(default_factory=list)
    partitioned: str = ""
    filesystem: FileSystemInfo = field(default_factory=FileSystemInfo)
    claim_ref: dict[str, str] | None = None


@dataclass
class DeviceStatus:
    """Observed state and claim state of a block device."""

    claim_state: str = ""
    state: str = ""


@dataclass
class BlockDeviceResource:
    """A BlockDevice resource."""

    type_meta: TypeMeta = field(default_factory=TypeMeta)
    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: DeviceSpec = field(default_factory=DeviceSpec)
    status: DeviceStatus = field(default_factory=DeviceStatus)

    def deep_copy(self) -> BlockDeviceResource:
        """Return a copy sharing no mutable state with this resource."""
        return copy.deepcopy(self)


@dataclass
class BlockDeviceList:
    """A list of BlockDevice resources."""

    type_meta: TypeMeta = field(default_factory=TypeMeta)
    items: list[BlockDeviceResource] = field(default_factory=list)

    def deep_copy(self) -> BlockDeviceList:
        """Return a copy sharing no mutable state with this list."""
        return copy.deepcopy(self)
"""Internal representation of a block device found on the host."""

from __future__ import annotations

from dataclasses import dataclass, field

# Keys used in a block device's node attributes.
HOST_NAME = "hostname"
NODE_NAME = "nodename"
ZONE_NAME = "zone"
REGION_NAME = "region"

# Kinds of block device resources.
SPARSE_BLOCK_DEVICE_TYPE = "sparse"
BLOCK_DEVICE_TYPE = "blockdevice"

# Device states.
ACTIVE = "Active"
INACTIVE = "Inactive"
UNKNOWN = "Unknown"

# Claim phases.
CLAIMED = "Claimed"
RELEASED = "Released"
UNCLAIMED = "Unclaimed"


@dataclass
class Identifier:
    """Identifiers that uniquely name a block device on the host."""

    uuid: str = ""
    sys_path: str = ""
    dev_path: str = ""


@dataclass
class FileSystemInformation:
    """Filesystem and mount information of a block device."""

    file_system_uuid: str = ""
    file_system: str = ""
    mount_point: list[str] = field(default_factory=list)


@dataclass
class CapacityInformation:
    """Capacity of a block device, in bytes."""

    storage: int = 0


@dataclass
class DeviceAttribute:
    """Fixed attributes reported by the device itself."""

    device_type: str = ""
    drive_type: str = ""
    physical_block_size: int = 0
    logical_block_size: int = 0
    hardware_sector_size: int = 0
    wwn: str = ""
    vendor: str = ""
    model: str = ""
    serial: str = ""
    firmware_revision: str = ""
    compliance: str = ""


@dataclass
class DevLink:
    """One kind of device link (by-id, by-path, ...) with its links."""

    kind: str = ""
    links: list[str] = field(default_factory=list)


@dataclass
class TemperatureInformation:
    """Temperature of the drive in degrees Celsius."""

    temperature_data_valid: bool = False
    current_temperature: int = 0


@dataclass
class PartitionInformation:
    """Details of a block device that is a partition."""

    partition_number: int = 0
    partition_entry_uuid: str = ""
    partition_table_uuid: str = ""
    partition_table_type: str = ""


@dataclass
class Status:
    """State and claim phase of a block device."""

    state: str = ""
    claim_phase: str = ""


@dataclass
class BlockDevice:
    """All data known about one block device on the system."""

    identifier: Identifier = field(default_factory=Identifier)
    node_attributes: dict[str, str] = field(default_factory=dict)
    fs_info: FileSystemInformation = field(default_factory=FileSystemInformation)
    capacity: CapacityInformation = field(default_factory=CapacityInformation)
    dev_links: list[DevLink] = field(default_factory=list)
    device_attributes: DeviceAttribute = field(default_factory=DeviceAttribute)
    partition_info: PartitionInformation = field(default_factory=PartitionInformation)
    parent: str = ""
    partitions: list[str] = field(default_factory=list)
    holders: list[str] = field(default_factory=list)
    slaves: list[str] = field(default_factory=list)
    temperature_info: TemperatureInformation = field(
        default_factory=TemperatureInformation
    )
    status: Status = field(default_factory=Status)
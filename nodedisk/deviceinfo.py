"""Collected device details and their conversion to BlockDevice resources."""

from __future__ import annotations

from dataclasses import dataclass, field

from nodedisk.blockdevice import BlockDevice
from nodedisk.constants import (
    BLOCK_DEVICE_UNCLAIMED,
    BY_ID_LINK,
    BY_PATH_LINK,
    HOST_NAME_KEY,
    KUBERNETES_HOST_NAME_LABEL,
    NDM_ACTIVE,
    NDM_BLOCK_DEVICE_KIND,
    NDM_DEFAULT_DEVICE_TYPE,
    NDM_DEVICE_TYPE_KEY,
    NDM_MANAGED_KEY,
    NDM_NOT_PARTITIONED,
    NDM_VERSION,
    NODE_NAME_KEY,
    TRUE_STRING,
)
from nodedisk.resources import (
    BlockDeviceResource,
    DeviceCapacity,
    DeviceDetails,
    DeviceDevLink,
    DeviceSpec,
    DeviceStatus,
    FileSystemInfo,
    NodeAttribute,
    ObjectMeta,
    TypeMeta,
)


@dataclass
class FSInfo:
    """Filesystem and mount point of a device."""

    file_system: str = ""
    mount_point: str = ""

    def _to_resource(self) -> FileSystemInfo:
        return FileSystemInfo(fs_type=self.file_system, mountpoint=self.mount_point)


@dataclass
class DeviceInfo:
    """Details of one device, ready to be turned into a BlockDevice resource."""

    node_attributes: dict[str, str] = field(default_factory=dict)
    uuid: str = ""
    capacity: int = 0
    model: str = ""
    serial: str = ""
    vendor: str = ""
    path: str = ""
    by_id_dev_links: list[str] = field(default_factory=list)
    by_path_dev_links: list[str] = field(default_factory=list)
    firmware_revision: str = ""
    logical_block_size: int = 0
    physical_block_size: int = 0
    hardware_sector_size: int = 0
    compliance: str = ""
    device_type: str = ""
    drive_type: str = ""
    partition_type: str = ""
    file_system_info: FSInfo = field(default_factory=FSInfo)
    namespace: str = ""

    def to_device(self) -> BlockDeviceResource:
        """Build the BlockDevice resource describing this device."""
        return BlockDeviceResource(
            type_meta=TypeMeta(kind=NDM_BLOCK_DEVICE_KIND, api_version=NDM_VERSION),
            metadata=self._object_meta(),
            spec=self._device_spec(),
            status=DeviceStatus(claim_state=BLOCK_DEVICE_UNCLAIMED, state=NDM_ACTIVE),
        )

    def _object_meta(self) -> ObjectMeta:
        return ObjectMeta(
            name=self.uuid,
            namespace=self.namespace,
            labels={
                KUBERNETES_HOST_NAME_LABEL: self.node_attributes.get(HOST_NAME_KEY, ""),
                NDM_DEVICE_TYPE_KEY: NDM_DEFAULT_DEVICE_TYPE,
                NDM_MANAGED_KEY: TRUE_STRING,
            },
        )

    def _device_spec(self) -> DeviceSpec:
        return DeviceSpec(
            node_attributes=NodeAttribute(
                node_name=self.node_attributes.get(NODE_NAME_KEY, "")
            ),
            path=self.path,
            details=DeviceDetails(
                device_type=self.device_type,
                drive_type=self.drive_type,
                logical_block_size=self.logical_block_size,
                physical_block_size=self.physical_block_size,
                hardware_sector_size=self.hardware_sector_size,
                model=self.model,
                compliance=self.compliance,
                serial=self.serial,
                vendor=self.vendor,
                firmware_revision=self.firmware_revision,
            ),
            capacity=DeviceCapacity(
                storage=self.capacity,
                logical_sector_size=self.logical_block_size,
                physical_sector_size=self.physical_block_size,
            ),
            devlinks=self._device_links(),
            partitioned=NDM_NOT_PARTITIONED,
            filesystem=self.file_system_info._to_resource(),
        )

    def _device_links(self) -> list[DeviceDevLink]:
        kinds = ((BY_ID_LINK, self.by_id_dev_links), (BY_PATH_LINK, self.by_path_dev_links))
        return [DeviceDevLink(kind=kind, links=list(links)) for kind, links in kinds if links]


def device_info_from_block_device(block_device: BlockDevice) -> DeviceInfo:
    """Collect the details of an internal block device into a DeviceInfo."""
    attributes = block_device.device_attributes
    info = DeviceInfo(
        node_attributes=dict(block_device.node_attributes),
        uuid=block_device.identifier.uuid,
        capacity=block_device.capacity.storage,
        model=attributes.model,
        serial=attributes.serial,
        vendor=attributes.vendor,
        path=block_device.identifier.dev_path,
        firmware_revision=attributes.firmware_revision,
        logical_block_size=attributes.logical_block_size,
        physical_block_size=attributes.physical_block_size,
        hardware_sector_size=attributes.hardware_sector_size,
        drive_type=attributes.drive_type,
        device_type=attributes.device_type,
        compliance=attributes.compliance,
    )
    for devlink in block_device.dev_links:
        if devlink.kind == BY_ID_LINK:
            info.by_id_dev_links = devlink.links
        elif devlink.kind == BY_PATH_LINK:
            info.by_path_dev_links = devlink.links
    info.file_system_info.file_system = block_device.fs_info.file_system
    # Only the first mount point is recorded.
    if block_device.fs_info.mount_point:
        info.file_system_info.mount_point = block_device.fs_info.mount_point[0]
    return info
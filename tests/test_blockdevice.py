import copy

from nodedisk.blockdevice import (
    ACTIVE,
    UNCLAIMED,
    BlockDevice,
    DevLink,
    FileSystemInformation,
    Identifier,
    Status,
)


def test_default_collections_are_not_shared():
    first = BlockDevice()
    second = BlockDevice()
    first.partitions.append("/dev/sda1")
    first.node_attributes["hostname"] = "my-machine"
    first.fs_info.mount_point.append("/home")
    assert second.partitions == []
    assert second.node_attributes == {}
    assert second.fs_info.mount_point == []


def test_nested_defaults_are_independent_instances():
    first = BlockDevice()
    second = BlockDevice()
    first.identifier.dev_path = "/dev/sda"
    first.device_attributes.vendor = "Google"
    assert second.identifier.dev_path == ""
    assert second.device_attributes.vendor == ""


def test_partition_example_equality_and_deepcopy():
    device = BlockDevice(
        identifier=Identifier(
            uuid="blockdevice-4c25d69f9adc868f61e3d891cf3a5613",
            sys_path="/sys/dev/block/8:1",
            dev_path="/dev/sda1",
        ),
        node_attributes={"hostname": "my-machine"},
        fs_info=FileSystemInformation(
            file_system_uuid="7e7f160b-0e79-478b-b006-1ebc6d0050dd",
            file_system="ext4",
            mount_point=["/home"],
        ),
        parent="/dev/sda",
        status=Status(state=ACTIVE, claim_phase=UNCLAIMED),
    )
    clone = copy.deepcopy(device)
    assert clone == device
    clone.fs_info.mount_point.append("/mnt")
    assert clone != device
    assert device.fs_info.mount_point == ["/home"]


def test_devlinks_hold_their_own_lists():
    link = DevLink(kind="by-id", links=["a", "b"])
    device = BlockDevice(dev_links=[link])
    assert device.dev_links[0].links == ["a", "b"]
    assert DevLink().links == []
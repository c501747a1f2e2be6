import os

import pytest

from nodedisk.blockdevice import BlockDevice, Identifier
from nodedisk.controller import Controller
from nodedisk.filters import (
    REGISTERED_FILTERS,
    OsDiskExcludeFilter,
    PathFilter,
    VendorFilter,
    disk_path_for_mount_point,
    register_filter,
    register_os_disk_exclude_filter,
    register_path_filter,
    register_vendor_filter,
    start,
)
from nodedisk.ndmconfig import FilterConfig, NodeDiskManagerConfig
from nodedisk.plugins import Filter, FilterInterface


class FakeFilter(FilterInterface):
    def __init__(self):
        self.started = 0

    def start(self):
        self.started += 1

    def include(self, block_device):
        return False

    def exclude(self, block_device):
        return True


def device(path="", vendor=""):
    bd = BlockDevice(identifier=Identifier(dev_path=path))
    bd.device_attributes.vendor = vendor
    return bd


def test_register_filter_adds_and_starts():
    ctrl = Controller()
    fake = FakeFilter()
    registered = register_filter(ctrl, "filter-1", True, fake)
    assert ctrl.filters == [Filter(name="filter-1", state=True, interface=fake)]
    assert registered is ctrl.filters[0]
    assert fake.started == 1


def test_register_disabled_filter_not_started():
    ctrl = Controller()
    fake = FakeFilter()
    register_filter(ctrl, "filter-1", False, fake)
    assert fake.started == 0
    assert ctrl.list_filter() == []


def test_start_runs_registration_functions():
    ctrl = Controller()
    fake = FakeFilter()
    start([lambda c: register_filter(c, "fake-filter", True, fake)], ctrl)
    assert ctrl.filters == [Filter(name="fake-filter", state=True, interface=fake)]


def test_start_with_builtin_filters_registers_three():
    ctrl = Controller()
    start(REGISTERED_FILTERS, ctrl)
    assert [f.name for f in ctrl.filters] == [
        "os disk exclude filter",
        "vendor filter",
        "path filter",
    ]


def test_register_with_no_controller_returns_none():
    assert register_path_filter(None) is None


@pytest.mark.parametrize(
    "exclude_path, dev_path, expected",
    [
        ("/dev/sda", "/dev/sda", False),
        ("/dev/sda", "/dev/sda1", False),
        ("/dev/sda", "/dev/sdaa", True),
        ("/dev/sda", "/dev/sdap1", True),
        ("/dev/sda", "/dev/sda1p1", True),
        ("/dev/loop0", "/dev/loop0p1", False),
        ("/dev/loop0", "/dev/loop0", False),
        ("/dev/nvme0n1", "/dev/nvme0n12", True),
        ("/dev/nvme0n1", "/dev/nvme0n1p0", False),
        ("/dev/vg0-lv0", "/dev/vg0-lv0", False),
        ("", "/dev/sda", True),
    ],
)
def test_os_disk_exclude(exclude_path, dev_path, expected):
    odf = OsDiskExcludeFilter(exclude_dev_path=exclude_path)
    assert odf.exclude(device(dev_path)) is expected


@pytest.mark.parametrize("path", ["fake-disk-path", "ignore-disk-path"])
def test_os_disk_include_always_true(path):
    odf = OsDiskExcludeFilter(exclude_dev_path="ignore-disk-path")
    assert odf.include(device(path)) is True


def test_disk_path_resolves_partition_parent(tmp_path):
    mounts = tmp_path / "mounts"
    mounts.write_text("overlay /other overlay rw 0 0\n/dev/sdz1 / ext4 rw 0 0\n")
    sys_root = tmp_path / "sys"
    sys_root.mkdir()
    part = tmp_path / "devices" / "sdz" / "sdz1"
    part.mkdir(parents=True)
    (part / "partition").write_text("1\n")
    os.symlink(part, sys_root / "sdz1")
    assert disk_path_for_mount_point(str(mounts), "/", str(sys_root)) == "/dev/sdz"


def test_disk_path_unescapes_mount_point(tmp_path):
    mounts = tmp_path / "mounts"
    mounts.write_text("/dev/sdz2 /my\\040data ext4 rw 0 0\n")
    result = disk_path_for_mount_point(str(mounts), "/my data", str(tmp_path / "none"))
    assert result == "/dev/sdz2"


def test_disk_path_missing_mount_point(tmp_path):
    mounts = tmp_path / "mounts"
    mounts.write_text("overlay / overlay rw 0 0\n")
    with pytest.raises(LookupError):
        disk_path_for_mount_point(str(mounts), "/", str(tmp_path))


def test_os_disk_start_falls_back_to_second_mount_file(tmp_path):
    mounts = tmp_path / "mounts"
    mounts.write_text("/dev/sdz / ext4 rw 0 0\n")
    odf = OsDiskExcludeFilter(
        mount_file_paths=[str(tmp_path / "missing"), str(mounts)],
        sys_block_root=str(tmp_path / "sys"),
    )
    odf.start()
    assert odf.exclude_dev_path == "/dev/sdz"
    assert odf.exclude(device("/dev/sdz3")) is False


def test_os_disk_start_without_match_leaves_path_empty(tmp_path):
    odf = OsDiskExcludeFilter(mount_file_paths=[str(tmp_path / "missing")])
    odf.start()
    assert odf.exclude_dev_path == ""


def test_register_os_disk_filter_uses_config():
    ctrl = Controller()
    ctrl.ndm_config = NodeDiskManagerConfig(
        filter_configs=[
            FilterConfig(
                key="os-disk-exclude-filter",
                name="custom os filter",
                state="false",
                exclude="/,/boot",
            )
        ]
    )
    registered = register_os_disk_exclude_filter(ctrl)
    assert registered.name == "custom os filter"
    assert registered.state is False
    assert registered.interface.mount_points == ["/", "/boot"]


def test_path_filter_register_defaults():
    ctrl = Controller()
    registered = register_path_filter(ctrl)
    assert registered.name == "path filter"
    assert registered.state is True
    assert registered.interface.include_paths == []
    assert registered.interface.exclude_paths == ["loop"]
    assert ctrl.filters == [registered]


def test_path_filter_register_uses_config():
    ctrl = Controller()
    ctrl.ndm_config = NodeDiskManagerConfig(
        filter_configs=[
            FilterConfig(key="path-filter", name="paths", state="true", include="sd", exclude="")
        ]
    )
    registered = register_path_filter(ctrl)
    assert registered.name == "paths"
    assert registered.interface.include_paths == ["sd"]
    assert registered.interface.exclude_paths == []


@pytest.mark.parametrize(
    "include, exclude",
    [("", ""), ("loop", "loop")],
)
def test_path_start(include, exclude):
    pf = PathFilter(include, exclude)
    pf.start()
    assert pf.exclude_paths == (exclude.split(",") if exclude else [])
    assert pf.include_paths == (include.split(",") if include else [])


@pytest.mark.parametrize(
    "exclude, path, expected",
    [("", "/dev/loop0", True), ("loop", "/dev/loop0", False), ("loop", "/dev/sdb", True)],
)
def test_path_filter_exclude(exclude, path, expected):
    pf = PathFilter(exclude=exclude)
    pf.start()
    assert pf.exclude(device(path)) is expected


@pytest.mark.parametrize(
    "include, path, expected",
    [("", "/dev/loop0", True), ("loop", "/dev/loop0", True), ("loop", "/dev/sdb", False)],
)
def test_path_filter_include(include, path, expected):
    pf = PathFilter(include=include)
    pf.start()
    assert pf.include(device(path)) is expected


def test_path_filter_ignores_case():
    pf = PathFilter(exclude="LOOP")
    pf.start()
    assert pf.exclude(device("/dev/loop1")) is False


def test_vendor_filter_register_defaults():
    ctrl = Controller()
    registered = register_vendor_filter(ctrl)
    assert registered.name == "vendor filter"
    assert registered.state is True
    assert registered.interface.include_vendors == []
    assert registered.interface.exclude_vendors == []


@pytest.mark.parametrize("include, exclude", [("", ""), ("Google", "Google")])
def test_vendor_start(include, exclude):
    vf = VendorFilter(include, exclude)
    vf.start()
    assert vf.exclude_vendors == (exclude.split(",") if exclude else [])
    assert vf.include_vendors == (include.split(",") if include else [])


@pytest.mark.parametrize(
    "exclude, vendor, expected",
    [("", "SanDisk", True), ("Google", "Google", False), ("Google", "SanDisk", True)],
)
def test_vendor_filter_exclude(exclude, vendor, expected):
    vf = VendorFilter(exclude=exclude)
    vf.start()
    assert vf.exclude(device(vendor=vendor)) is expected


@pytest.mark.parametrize(
    "include, vendor, expected",
    [("", "SanDisk", True), ("Google", "Google", True), ("Google", "SanDisk", False)],
)
def test_vendor_filter_include(include, vendor, expected):
    vf = VendorFilter(include=include)
    vf.start()
    assert vf.include(device(vendor=vendor)) is expected


def test_vendor_filter_matches_whole_name_only():
    vf = VendorFilter(include="goo")
    vf.start()
    assert vf.include(device(vendor="Google")) is False
    assert VendorFilter(include="GOOGLE").include(device(vendor="google")) is True


def test_controller_apply_filter_with_path_filter():
    ctrl = Controller()
    register_path_filter(ctrl)
    assert ctrl.apply_filter(device("/dev/loop0")) is False
    assert ctrl.apply_filter(device("/dev/sdb")) is True
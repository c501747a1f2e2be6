import os

import pytest

from nodedisk.blockdevice import SPARSE_BLOCK_DEVICE_TYPE
from nodedisk.sparse import (
    ENV_SPARSE_FILE_COUNT,
    ENV_SPARSE_FILE_DIR,
    ENV_SPARSE_FILE_SIZE,
    SPARSE_FILE_DEFAULT_SIZE,
    SPARSE_FILE_MIN_SIZE,
    check_and_create_sparse_file,
    get_active_sparse_block_devices_uuid,
    get_sparse_block_device_uuid,
    get_sparse_file_count,
    get_sparse_file_dir,
    get_sparse_file_size,
    sparse_device_info,
)


def test_sparse_dir_not_set(monkeypatch):
    monkeypatch.setenv(ENV_SPARSE_FILE_DIR, "")
    assert get_sparse_file_dir() == ""


def test_sparse_dir_invalid(monkeypatch, tmp_path):
    monkeypatch.setenv(ENV_SPARSE_FILE_DIR, str(tmp_path / "invalid"))
    assert get_sparse_file_dir() == ""


def test_sparse_dir_valid(monkeypatch, tmp_path):
    monkeypatch.setenv(ENV_SPARSE_FILE_DIR, str(tmp_path))
    assert get_sparse_file_dir() == str(tmp_path)


@pytest.mark.parametrize(
    "value, expected",
    [("", 1), ("2", 2), ("z", 0)],
)
def test_sparse_file_count(monkeypatch, value, expected):
    monkeypatch.setenv(ENV_SPARSE_FILE_COUNT, value)
    assert get_sparse_file_count() == expected


@pytest.mark.parametrize(
    "value, expected",
    [
        ("", SPARSE_FILE_DEFAULT_SIZE),
        ("2000000000", 2000000000),
        ("1.073741824e+11", 107374182400),
        ("100", SPARSE_FILE_MIN_SIZE),
        ("z", 0),
    ],
)
def test_sparse_file_size(monkeypatch, value, expected):
    monkeypatch.setenv(ENV_SPARSE_FILE_SIZE, value)
    assert get_sparse_file_size() == expected


def test_check_and_create_sparse_file(tmp_path):
    test_file = str(tmp_path / "test.img")
    check_and_create_sparse_file(test_file, 1000)
    assert os.stat(test_file).st_size == 1000
    check_and_create_sparse_file(test_file, 2000)
    assert os.stat(test_file).st_size == 1000


def test_sparse_uuid_values():
    assert (
        get_sparse_block_device_uuid("instance-1", "/tmp/0-ndm-sparse.img")
        == "sparse-2b3468d4b928c7e048ad8747ba710e4c"
    )
    assert (
        get_sparse_block_device_uuid("instance-1", "/tmp/1-ndm-sparse.img")
        == "sparse-af2cd3d402e3447e315aadb7e7b46a34"
    )
    assert (
        get_sparse_block_device_uuid("fake-host-name", "/tmp/0-ndm-sparse.img")
        == "sparse-11063db4a4bfd3d0443d0b9d98391707"
    )


def test_active_sparse_uuids_valid_dir(monkeypatch, tmp_path):
    for name in ("1-ndm-sparse.img", "0-ndm-sparse.img", "other.img"):
        (tmp_path / name).touch()
    monkeypatch.setenv(ENV_SPARSE_FILE_DIR, str(tmp_path))
    expected = [
        get_sparse_block_device_uuid("instance-1", str(tmp_path / "0-ndm-sparse.img")),
        get_sparse_block_device_uuid("instance-1", str(tmp_path / "1-ndm-sparse.img")),
    ]
    assert get_active_sparse_block_devices_uuid("instance-1") == expected


def test_active_sparse_uuids_invalid_dir(monkeypatch, tmp_path):
    monkeypatch.setenv(ENV_SPARSE_FILE_DIR, str(tmp_path / "invalid"))
    assert get_active_sparse_block_devices_uuid("instance-1") == []


def test_sparse_device_info(tmp_path):
    sparse_file = str(tmp_path / "0-ndm-sparse.img")
    check_and_create_sparse_file(sparse_file, 10000)
    attributes = {"hostname": "fake-host-name"}
    info = sparse_device_info("fake-host-name", attributes, sparse_file)
    assert info.uuid == get_sparse_block_device_uuid("fake-host-name", sparse_file)
    assert info.capacity == 10000
    assert info.device_type == SPARSE_BLOCK_DEVICE_TYPE
    assert info.path == sparse_file
    assert info.node_attributes == attributes


def test_sparse_device_info_missing_file(tmp_path):
    with pytest.raises(OSError):
        sparse_device_info("fake-host-name", {}, str(tmp_path / "missing.img"))
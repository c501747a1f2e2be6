# nodedisk

`nodedisk` keeps an inventory of the block devices attached to a machine and
records each one as a `BlockDevice` resource in a resource store.

## What is in the package

- **`nodedisk.blockdevice`** – the device model: `BlockDevice` with its
  `Identifier`, `DeviceAttribute`, `FileSystemInformation`,
  `CapacityInformation`, `DevLink`, `PartitionInformation`,
  `TemperatureInformation` and `Status`.
- **`nodedisk.resources`** – the stored objects: `BlockDeviceResource` and
  `BlockDeviceList` with `TypeMeta`, `ObjectMeta`, `DeviceSpec` and
  `DeviceStatus`, each resource and list with a `deep_copy()`.
- **`nodedisk.deviceinfo`** – `device_info_from_block_device()` turns a
  `BlockDevice` into a `DeviceInfo`; `DeviceInfo.to_device()` builds the
  `BlockDeviceResource` (kind `BlockDevice`, state `Active`, claim state
  `Unclaimed`, labelled with the host name, device type and `ndm.io/managed`).
- **`nodedisk.client`** – `InMemoryClient`, a thread-safe store of resources
  and `Node`s. It raises `NotFoundError`, `AlreadyExistsError` and
  `ConflictError` (all subclasses of `ApiError`) and filters `list()` by a
  label selector (`key=value`, `key==value`, `key!=value`, `key`, `!key`).
- **`nodedisk.controller`** – `Controller` creates, updates, deactivates,
  lists and deletes resources, marks stale devices `Inactive`, registers
  filters and probes, and marks everything it owns `Unknown` on shutdown.
  `get_node_name()` and `get_namespace()` read `NODE_NAME` and `NAMESPACE`.
- **`nodedisk.plugins`** – the `FilterInterface` and `ProbeInterface` base
  classes and the `Filter`, `Probe` and `EventMessage` records.
- **`nodedisk.filters`** – the built-in `OsDiskExcludeFilter`, `PathFilter`
  and `VendorFilter`, the `register_*` functions that configure them from the
  controller's config, and `start()` to run a sequence of them
  (`REGISTERED_FILTERS` holds the three built-in ones).
- **`nodedisk.ndmconfig`** – `load_ndm_config()` reads the probe and filter
  configuration from a JSON or YAML file.
- **`nodedisk.sparse`** – sparse files that stand in for disks.

## Using the controller

```python
from nodedisk.client import InMemoryClient
from nodedisk.controller import Controller
from nodedisk.deviceinfo import DeviceInfo

controller = Controller(
    client=InMemoryClient(),
    node_attributes={"hostname": "node-1", "nodename": "node-1"},
    namespace="openebs",
)

details = DeviceInfo(uuid="blockdevice-example", path="/dev/sdb", capacity=10737418240)
controller.push_block_device_resource(None, details)
print(controller.get_block_device("blockdevice-example").status.state)   # Active

# No device is present any more: the resource is marked Inactive.
controller.deactivate_stale_block_device_resource([])
print(controller.get_block_device("blockdevice-example").status.state)   # Inactive
```

`create_block_device()` updates the resource when it already exists, and
every update keeps the stored claim reference and claim state and merges the
labels and annotations into the stored ones. `list_block_device_resource()`
returns only resources of this host whose `ndm.io/managed` label is not
`false`, and leaves out those annotated `openebs.io/reconcile` with a false
value.

`Controller.set_controller_options(NDMOptions(...))` loads the config file,
takes the node name from `NODE_NAME` and the host name from the node's
`kubernetes.io/hostname` label (falling back to the node name); the node must
be present in the client. `Controller.start(stop_event)` creates the sparse
files, waits until the event is set (or, with no event, until SIGINT or
SIGTERM), then marks the node's resources `Unknown`.

## Filters and probes

```python
from nodedisk import filters
from nodedisk.blockdevice import BlockDevice

filters.start(filters.REGISTERED_FILTERS, controller)

device = BlockDevice()
device.identifier.dev_path = "/dev/loop0"
print(controller.apply_filter(device))   # False: the path filter excludes "loop"
```

A device passes a filter when `include()` and `exclude()` both return True.
The path filter matches substrings of the device path case-insensitively; the
vendor filter compares whole vendor names case-insensitively; the OS-disk
filter finds the disk holding `/` or `/etc/hosts` in `/host/proc/1/mounts` or
`/proc/self/mounts` and excludes it together with its partitions. Probes are
run in ascending `priority` by `Controller.fill_block_device_details()`.

## Configuration

```yaml
probeconfigs:
  - key: udev-probe
    name: udev probe
    state: true
filterconfigs:
  - key: os-disk-exclude-filter
    name: os disk exclude filter
    state: true
    include: ""
    exclude: /,/etc/hosts,/boot
  - key: path-filter
    name: path filter
    state: true
    include: ""
    exclude: loop
```

```python
from nodedisk.ndmconfig import load_ndm_config

config = load_ndm_config("/host/node-disk-manager.config")
for filter_config in config.filter_configs:
    print(filter_config.key, filter_config.exclude)
```

JSON is tried first, then YAML; YAML booleans and numbers become strings.
Include and exclude lists are comma separated. For the OS-disk filter the
exclude list names mount points.

## Sparse files

```python
import os
from nodedisk.sparse import get_sparse_file_size, get_sparse_block_device_uuid

os.environ["SPARSE_FILE_SIZE"] = "100"
print(get_sparse_file_size())          # raised to the 1 GiB minimum

print(get_sparse_block_device_uuid("node-1", "/var/sparse/0-ndm-sparse.img"))
```

`SPARSE_FILE_DIR`, `SPARSE_FILE_SIZE` and `SPARSE_FILE_COUNT` control how
many files named `<n>-ndm-sparse.img` are created and how large. The
identifier of a sparse device is fixed for a given host and file path, so an
existing file and its resource are reused.

## What the package does not do

- It has no command-line program and no long-running daemon entry point; the
  controller is driven from Python code.
- It talks to no real cluster API server. `InMemoryClient` is the only store.
- It has no probes that read device details from the system (no udev, SMART
  or similar); probes are supplied by implementing `ProbeInterface`.
- It does not watch for device attach or detach events.
"""The node disk manager controller and its store of BlockDevice resources."""

from __future__ import annotations

import logging
import os
import posixpath
import signal
import threading
from dataclasses import dataclass, field

from nodedisk.blockdevice import BlockDevice
from nodedisk.client import (
    AlreadyExistsError,
    ApiError,
    ConflictError,
    InMemoryClient,
)
from nodedisk.constants import (
    CRD_RETRY_INTERVAL,
    FALSE_STRING,
    HOST_NAME_KEY,
    KUBERNETES_HOST_NAME_LABEL,
    NDM_BLOCK_DEVICE_KIND,
    NDM_DEFAULT_DISK_TYPE,
    NDM_INACTIVE,
    NDM_MANAGED_KEY,
    NDM_UNKNOWN,
    NDM_VERSION,
    NODE_NAME_KEY,
    OPENEBS_RECONCILE,
)
from nodedisk.deviceinfo import DeviceInfo
from nodedisk.ndmconfig import (
    DEFAULT_CONFIG_FILE_PATH,
    NodeDiskManagerConfig,
    load_ndm_config,
)
from nodedisk.plugins import Filter, Probe
from nodedisk.resources import (
    BlockDeviceList,
    BlockDeviceResource,
    ObjectMeta,
    TypeMeta,
)
from nodedisk.sparse import (
    SPARSE_FILE_NAME,
    check_and_create_sparse_file,
    get_active_sparse_block_devices_uuid,
    get_sparse_file_count,
    get_sparse_file_dir,
    get_sparse_file_size,
    sparse_device_info,
)

logger = logging.getLogger(__name__)

_FALSY_VALUES = frozenset({"false", "no", "0", "off"})


def _is_falsy(value: str) -> bool:
    return value.strip().lower() in _FALSY_VALUES


def get_node_name() -> str:
    """Return the node name from the NODE_NAME environment variable."""
    try:
        return os.environ["NODE_NAME"]
    except KeyError:
        raise RuntimeError("error getting node name") from None


def get_namespace() -> str:
    """Return the namespace NDM runs in from the NAMESPACE environment variable."""
    try:
        return os.environ["NAMESPACE"]
    except KeyError:
        raise RuntimeError("error getting namespace") from None


@dataclass
class NDMOptions:
    """Options the daemon is started with."""

    config_file_path: str = DEFAULT_CONFIG_FILE_PATH
    feature_gate: list[str] = field(default_factory=list)


def _merge_metadata(new: ObjectMeta, old: ObjectMeta) -> ObjectMeta:
    """Take the old metadata and overlay the new labels and annotations."""
    merged = ObjectMeta(
        name=old.name,
        namespace=old.namespace,
        labels={**old.labels, **new.labels},
        annotations={**old.annotations, **new.annotations},
        resource_version=old.resource_version,
    )
    return merged


class Controller:
    """Keeps the BlockDevice resources of one node in step with its disks."""

    def __init__(
        self,
        client: InMemoryClient | None = None,
        node_attributes: dict[str, str] | None = None,
        namespace: str = "",
    ) -> None:
        self.client = client if client is not None else InMemoryClient()
        self.node_attributes: dict[str, str] = dict(node_attributes or {})
        self.namespace = namespace
        self.ndm_config: NodeDiskManagerConfig | None = None
        self.feature_gates: list[str] = []
        self.filters: list[Filter] = []
        self.probes: list[Probe] = []
        self._lock = threading.Lock()

    # -- setup -----------------------------------------------------------

    def set_controller_options(self, opts: NDMOptions) -> None:
        """Apply the daemon options and read this node's attributes."""
        self.set_ndm_config(opts)
        self.feature_gates = list(opts.feature_gate)
        with self._lock:
            self.filters = []
            self.probes = []
        self.node_attributes = {}
        self._set_node_attributes()

    def _set_node_attributes(self) -> None:
        try:
            node_name = get_node_name()
        except RuntimeError as err:
            raise RuntimeError(f"unable to set node attributes: {err}") from err
        self.node_attributes[NODE_NAME_KEY] = node_name
        try:
            node = self.client.get_node(node_name)
        except ApiError as err:
            raise RuntimeError(f"unable to set node attributes: {err}") from err
        host_name = node.labels.get(KUBERNETES_HOST_NAME_LABEL, "")
        self.node_attributes[HOST_NAME_KEY] = host_name or node_name

    def set_ndm_config(self, opts: NDMOptions) -> None:
        """Load the probe and filter config; leave it unset if it cannot be read."""
        try:
            self.ndm_config = load_ndm_config(opts.config_file_path)
        except (OSError, ValueError) as err:
            self.ndm_config = None
            logger.error("unable to set ndm config : %s", err)

    def wait_for_block_device_crd(self, retry_interval: float = CRD_RETRY_INTERVAL) -> None:
        """Block until BlockDevice resources can be listed."""
        while True:
            try:
                self.list_block_device_resource()
            except ApiError as err:
                logger.error(
                    "BlockDevice CRD is not available yet. Retrying after %ss, error: %s",
                    retry_interval,
                    err,
                )
                threading.Event().wait(retry_interval)
                continue
            logger.info("BlockDevice CRD is available")
            return

    def start(self, stop_event: threading.Event | None = None) -> None:
        """Create sparse files, run until stopped, then mark devices unknown."""
        self.initialize_sparse_files()
        if stop_event is None:
            stop_event = threading.Event()
            for signum in (signal.SIGINT, signal.SIGTERM):
                signal.signal(signum, lambda *_: stop_event.set())
        logger.info("started the controller")
        stop_event.wait()
        logger.info("changing the state to unknown before shutting down.")
        self.mark_block_device_status_to_unknown()
        logger.info("shutting down the controller")

    # -- filters and probes ---------------------------------------------

    def add_new_filter(self, filter: Filter) -> None:
        """Register a filter."""
        with self._lock:
            self.filters.append(filter)
        logger.info(
            "configured %s : state %s", filter.name, "enable" if filter.state else "disable"
        )

    def list_filter(self) -> list[Filter]:
        """Return the enabled filters."""
        with self._lock:
            return [f for f in self.filters if f.state]

    def apply_filter(self, block_device: BlockDevice) -> bool:
        """Return False if any enabled filter rejects the device."""
        for registered in self.list_filter():
            if not registered.apply_filter(block_device):
                logger.info(
                    "%s ignored by %s", block_device.identifier.dev_path, registered.name
                )
                return False
        return True

    def add_new_probe(self, probe: Probe) -> None:
        """Register a probe, keeping probes ordered by priority."""
        with self._lock:
            self.probes.append(probe)
            self.probes.sort(key=lambda p: p.priority)
        logger.info(
            "configured %s : state %s", probe.name, "enable" if probe.state else "disable"
        )

    def list_probe(self) -> list[Probe]:
        """Return the enabled probes in priority order."""
        with self._lock:
            return [p for p in self.probes if p.state]

    def fill_block_device_details(self, block_device: BlockDevice) -> None:
        """Let every enabled probe fill in details of the device."""
        block_device.node_attributes = dict(self.node_attributes)
        block_device.device_attributes.device_type = NDM_DEFAULT_DISK_TYPE
        for probe in self.list_probe():
            probe.fill_block_device_details(block_device)
            logger.info("details filled by %s", probe.name)

    # -- resource store -------------------------------------------------

    def create_block_device(self, block_device: BlockDeviceResource) -> None:
        """Create the resource, or update it if it already exists."""
        name = block_device.metadata.name
        try:
            self.client.create(block_device.deep_copy())
        except AlreadyExistsError:
            pass
        except ApiError as err:
            logger.error(
                "eventcode=ndm.blockdevice.create.failure "
                "msg=Creation of blockdevice object failed : %s rname=%s",
                err,
                name,
            )
            raise
        else:
            logger.info(
                "eventcode=ndm.blockdevice.create.success "
                "msg=Created blockdevice object in etcd rname=%s",
                name,
            )
            return

        # The device may have moved from another node; update it instead.
        try:
            self.update_block_device(block_device, None)
            return
        except ConflictError:
            pass
        except ApiError as err:
            logger.error("Updating of BlockDevice Object failed: %s", err)
            raise

        # Someone else updated it in between; try once more.
        try:
            self.update_block_device(block_device, None)
        except ApiError:
            logger.error("Update to blockdevice object failed: %s", name)

    def update_block_device(
        self,
        block_device: BlockDeviceResource,
        old_block_device: BlockDeviceResource | None,
    ) -> None:
        """Update the resource, keeping its claim and system-set metadata."""
        updated = block_device.deep_copy()
        if old_block_device is None:
            try:
                old_block_device = self.client.get(block_device.metadata.name)
            except ApiError as err:
                logger.error(
                    "eventcode=ndm.blockdevice.update.failure msg=Failed to update "
                    "block device : unable to get blockdevice object, err:%s rname=%s",
                    err,
                    updated.metadata.name,
                )
                raise
        updated.metadata = _merge_metadata(updated.metadata, old_block_device.metadata)
        updated.spec.claim_ref = (
            dict(old_block_device.spec.claim_ref)
            if old_block_device.spec.claim_ref is not None
            else None
        )
        updated.status.claim_state = old_block_device.status.claim_state
        try:
            self.client.update(updated)
        except ApiError as err:
            logger.error(
                "eventcode=ndm.blockdevice.update.failure "
                "msg=Unable to update blockdevice object : %s rname=%s",
                err,
                updated.metadata.name,
            )
            raise
        logger.info(
            "eventcode=ndm.blockdevice.update.success msg=Updated blockdevice object rname=%s",
            updated.metadata.name,
        )

    def deactivate_block_device(self, block_device: BlockDeviceResource) -> None:
        """Mark the resource Inactive; failures are logged."""
        updated = block_device.deep_copy()
        updated.status.state = NDM_INACTIVE
        try:
            self.client.update(updated)
        except ApiError as err:
            logger.error(
                "eventcode=ndm.blockdevice.deactivate.failure "
                "msg=Unable to deactivate blockdevice : %s rname=%s",
                err,
                updated.metadata.name,
            )
            return
        logger.info(
            "eventcode=ndm.blockdevice.deactivate.success msg=Deactivated blockdevice rname=%s",
            updated.metadata.name,
        )

    def get_block_device(self, name: str) -> BlockDeviceResource:
        """Return the named resource; raise NotFoundError if it does not exist."""
        try:
            resource = self.client.get(name)
        except ApiError as err:
            logger.error("Unable to get blockdevice object : %s", err)
            raise
        logger.info("Got blockdevice object : %s", name)
        return resource

    def delete_block_device(self, name: str) -> None:
        """Delete the named resource; failures are logged."""
        try:
            self.client.delete(name)
        except ApiError as err:
            logger.error(
                "eventcode=ndm.blockdevice.delete.failure "
                "msg=Unable to delete blockdevice object : %s rname=%s",
                err,
                name,
            )
            return
        logger.info(
            "eventcode=ndm.blockdevice.delete.success msg=Deleted blockdevice object rname=%s",
            name,
        )

    def list_block_device_resource(self) -> BlockDeviceList:
        """Return the managed resources of this node that are to be reconciled."""
        selector = (
            f"{KUBERNETES_HOST_NAME_LABEL}={self.node_attributes.get(HOST_NAME_KEY, '')},"
            f"{NDM_MANAGED_KEY}!={FALSE_STRING}"
        )
        items = self.client.list(selector)
        return BlockDeviceList(
            type_meta=TypeMeta(kind=NDM_BLOCK_DEVICE_KIND, api_version=NDM_VERSION),
            items=[
                item
                for item in items
                if not (
                    OPENEBS_RECONCILE in item.metadata.annotations
                    and _is_falsy(item.metadata.annotations[OPENEBS_RECONCILE])
                )
            ],
        )

    def get_existing_block_device_resource(
        self, block_device_list: BlockDeviceList, uuid: str
    ) -> BlockDeviceResource | None:
        """Return the resource of the list with the given name, or None."""
        return next(
            (item for item in block_device_list.items if item.metadata.name == uuid),
            None,
        )

    def deactivate_stale_block_device_resource(self, devices: list[str]) -> None:
        """Mark Inactive every resource whose device is not on the system."""
        present = set(devices)
        present.update(
            get_active_sparse_block_devices_uuid(self.node_attributes.get(HOST_NAME_KEY, ""))
        )
        try:
            resources = self.list_block_device_resource()
        except ApiError as err:
            logger.error("%s", err)
            return
        for item in resources.items:
            if item.metadata.name not in present:
                self.deactivate_block_device(item)

    def push_block_device_resource(
        self,
        old_block_device: BlockDeviceResource | None,
        device_details: DeviceInfo,
    ) -> None:
        """Update the resource if an old one is given, else create it."""
        device_details.node_attributes = dict(self.node_attributes)
        device_details.namespace = self.namespace
        resource = device_details.to_device()
        if old_block_device is not None:
            self.update_block_device(resource, old_block_device)
        else:
            self.create_block_device(resource)

    def mark_block_device_status_to_unknown(self) -> None:
        """Mark every resource of this node Unknown, as done before shutdown."""
        try:
            resources = self.list_block_device_resource()
        except ApiError as err:
            logger.error("%s", err)
            return
        for item in resources.items:
            item.status.state = NDM_UNKNOWN
            try:
                self.client.update(item)
            except ApiError as err:
                logger.error(
                    "Unable to mark blockdevice object %s unknown: %s", item.metadata.name, err
                )
                continue
            logger.info("Status marked unknown for blockdevice object: %s", item.metadata.name)

    # -- sparse files ---------------------------------------------------

    def initialize_sparse_files(self) -> None:
        """Create the configured sparse files and their resources."""
        sparse_dir = get_sparse_file_dir()
        size = get_sparse_file_size()
        count = get_sparse_file_count()
        if not sparse_dir or size < 1 or count < 1:
            logger.info("No sparse file path/size provided. Skip creating sparse files.")
            return
        for index in range(count):
            sparse_file = posixpath.normpath(
                posixpath.join(sparse_dir, f"{index}-{SPARSE_FILE_NAME}")
            )
            try:
                check_and_create_sparse_file(sparse_file, size)
            except OSError as err:
                logger.info("Error creating sparse file: %s Error: %s", sparse_file, err)
                continue
            self.mark_sparse_block_device_state_active(sparse_file, size)

    def mark_sparse_block_device_state_active(
        self, sparse_file: str, sparse_file_size: int
    ) -> None:
        """Create or refresh the Active resource of a sparse file."""
        try:
            details = sparse_device_info(
                self.node_attributes.get(HOST_NAME_KEY, ""),
                self.node_attributes,
                sparse_file,
            )
        except OSError as err:
            logger.info("Error fetching the size of sparse file: %s", err)
            logger.error("Failed to create a block device CR for sparse file: %s", sparse_file)
            return
        details.namespace = self.namespace
        logger.info("Updating the BlockDevice CR for Sparse file: %s", details.uuid)
        try:
            self.create_block_device(details.to_device())
        except ApiError as err:
            logger.error("Failed to create a block device CR for sparse file: %s", err)
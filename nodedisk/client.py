"""In-memory store of BlockDevice resources and cluster nodes."""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass, field

from nodedisk.resources import BlockDeviceResource


class ApiError(Exception):
    """Base error raised by the resource store."""


class NotFoundError(ApiError):
    """The requested object does not exist."""


class AlreadyExistsError(ApiError):
    """An object with the same name already exists."""


class ConflictError(ApiError):
    """The object was changed by someone else since it was read."""


@dataclass
class Node:
    """A cluster node with its labels."""

    name: str
    labels: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class _Requirement:
    key: str
    operator: str
    value: str = ""

    def matches(self, labels: dict[str, str]) -> bool:
        if self.operator == "exists":
            return self.key in labels
        if self.operator == "absent":
            return self.key not in labels
        if self.operator == "=":
            return labels.get(self.key) == self.value
        # "!=" holds when the label is missing or has another value.
        return self.key not in labels or labels[self.key] != self.value


def _parse_selector(selector: str) -> list[_Requirement]:
    requirements = []
    for raw_term in selector.split(","):
        term = raw_term.strip()
        if not term:
            if selector.strip():
                raise ValueError(f"invalid label selector: {selector!r}")
            continue
        if "!=" in term:
            key, value = term.split("!=", 1)
            requirement = _Requirement(key.strip(), "!=", value.strip())
        elif "==" in term:
            key, value = term.split("==", 1)
            requirement = _Requirement(key.strip(), "=", value.strip())
        elif "=" in term:
            key, value = term.split("=", 1)
            requirement = _Requirement(key.strip(), "=", value.strip())
        elif term.startswith("!"):
            requirement = _Requirement(term[1:].strip(), "absent")
        else:
            requirement = _Requirement(term, "exists")
        if not requirement.key:
            raise ValueError(f"invalid label selector: {selector!r}")
        requirements.append(requirement)
    return requirements


class InMemoryClient:
    """A thread-safe store for BlockDevice resources and nodes.

    Objects are copied on the way in and on the way out, so callers never
    share state with what is stored.
    """

    def __init__(
        self,
        resources: Iterable[BlockDeviceResource] = (),
        nodes: Iterable[Node] = (),
    ) -> None:
        self._lock = threading.Lock()
        self._resources: dict[str, BlockDeviceResource] = {}
        self._nodes: dict[str, Node] = {}
        for resource in resources:
            self.create(resource)
        for node in nodes:
            self.add_node(node)

    def create(self, resource: BlockDeviceResource) -> None:
        """Store a new resource; raise AlreadyExistsError if the name is taken."""
        name = resource.metadata.name
        with self._lock:
            if name in self._resources:
                raise AlreadyExistsError(f"blockdevice {name!r} already exists")
            self._resources[name] = resource.deep_copy()

    def get(self, name: str) -> BlockDeviceResource:
        """Return a copy of the named resource."""
        with self._lock:
            try:
                return self._resources[name].deep_copy()
            except KeyError:
                raise NotFoundError(f"blockdevice {name!r} not found") from None

    def update(self, resource: BlockDeviceResource) -> None:
        """Replace a stored resource.

        Raises NotFoundError when it is missing and ConflictError when the
        resource carries a resource version that differs from the stored one.
        """
        name = resource.metadata.name
        with self._lock:
            stored = self._resources.get(name)
            if stored is None:
                raise NotFoundError(f"blockdevice {name!r} not found")
            version = resource.metadata.resource_version
            if version and version != stored.metadata.resource_version:
                raise ConflictError(
                    f"blockdevice {name!r} has been modified; resource version "
                    f"{version!r} is stale"
                )
            self._resources[name] = resource.deep_copy()

    def delete(self, name: str) -> None:
        """Remove the named resource."""
        with self._lock:
            if self._resources.pop(name, None) is None:
                raise NotFoundError(f"blockdevice {name!r} not found")

    def list(self, label_selector: str = "") -> list[BlockDeviceResource]:
        """Return copies of the resources matching a label selector, by name."""
        requirements = _parse_selector(label_selector)
        with self._lock:
            return [
                self._resources[name].deep_copy()
                for name in sorted(self._resources)
                if all(r.matches(self._resources[name].metadata.labels) for r in requirements)
            ]

    def add_node(self, node: Node) -> None:
        """Store or replace a node."""
        with self._lock:
            self._nodes[node.name] = Node(node.name, dict(node.labels))

    def get_node(self, name: str) -> Node:
        """Return a copy of the named node."""
        with self._lock:
            try:
                node = self._nodes[name]
            except KeyError:
                raise NotFoundError(f"node {name!r} not found") from None
            return Node(node.name, dict(node.labels))
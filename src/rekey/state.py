"""
Copyright 2026 Inmanta

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.

Contact: code@inmanta.com
"""

import logging
import re
import uuid
from collections import defaultdict
from collections.abc import Mapping, Sequence
from typing import Any, NamedTuple, Optional, Union

import pydantic

from rekey import const
from rekey.types import BaseModel, JsonType, ResourceType, ScopePath

LOGGER = logging.getLogger(__name__)

# An index suffix of a module call: [0], ["name"] or ['name']
MODULE_INDEX_REGEX = re.compile(r"""\[(?:"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*'|[^\]"']*)\]""")


def normalize_scope_path(scope_path: str) -> ScopePath:
    """
    Remove the count and for_each index suffixes from a scope path, so flat and index based module addressing compare equal.

    e.g. ``module.app[0].module.ids["eu"]`` becomes ``module.app.module.ids``
    """
    return ScopePath(MODULE_INDEX_REGEX.sub("", scope_path))


class ResourceSignature(NamedTuple):
    """
    The type and logical name that identify a declared resource within a scope
    """

    kind: str
    logical_name: str

    def __str__(self) -> str:
        return f"{self.kind}.{self.logical_name}"


class InstanceRecord(BaseModel):
    """
    A single instance of a resource record.

    :attr attributes: The attributes as persisted by the provider of the resource.
    :attr index_key: The count or for_each key of this instance, None for non-repeated resources.
    :attr extra: All other persisted fields, kept verbatim.
    """

    model_config = pydantic.ConfigDict(frozen=True)

    attributes: dict[str, Any] = {}
    index_key: Optional[Union[int, str]] = None
    extra: dict[str, Any] = {}

    @property
    def keepers(self) -> Mapping[str, str]:
        keepers = self.attributes.get(const.ATTRIBUTE_KEEPERS)
        if not isinstance(keepers, Mapping):
            return {}
        return keepers

    @property
    def id(self) -> Optional[str]:
        value = self.attributes.get(const.ATTRIBUTE_ID)
        return None if value is None else str(value)

    @classmethod
    def from_state(cls, obj: JsonType) -> "InstanceRecord":
        extra = {k: v for k, v in obj.items() if k not in ("attributes", "index_key")}
        return cls(attributes=obj.get("attributes") or {}, index_key=obj.get("index_key"), extra=extra)

    def to_state(self) -> JsonType:
        result: JsonType = {}
        if self.index_key is not None:
            result["index_key"] = self.index_key
        result.update(self.extra)
        result["attributes"] = self.attributes
        return result


class ResourceRecord(BaseModel):
    """
    A declared resource in the state, with all of its instances.

    :attr kind: The resource type, e.g. random_uuid
    :attr logical_name: The name of the resource within its module.
    :attr scope_path: The address of the enclosing module instance, the empty string for the root module.
    """

    model_config = pydantic.ConfigDict(frozen=True)

    kind: ResourceType
    logical_name: str
    scope_path: ScopePath = ScopePath(const.ROOT_SCOPE)
    mode: str = const.RESOURCE_MODE_MANAGED
    instances: list[InstanceRecord] = []
    extra: dict[str, Any] = {}

    @property
    def address(self) -> str:
        """
        The address of this record in the same notation as the CLI of the provisioning tool uses.
        """
        local = f"{self.kind}.{self.logical_name}"
        if self.mode != const.RESOURCE_MODE_MANAGED:
            local = f"{self.mode}.{local}"
        if self.scope_path:
            return f"{self.scope_path}.{local}"
        return local

    @property
    def signature(self) -> ResourceSignature:
        return ResourceSignature(self.kind, self.logical_name)

    def first_instance(self) -> Optional[InstanceRecord]:
        if not self.instances:
            return None
        return self.instances[0]

    def in_scope(self, scope_path: str, ignore_index: bool = False) -> bool:
        if ignore_index:
            return normalize_scope_path(self.scope_path) == normalize_scope_path(scope_path)
        return self.scope_path == scope_path

    @classmethod
    def from_state(cls, obj: JsonType) -> "ResourceRecord":
        known = ("module", "mode", "type", "name", "instances")
        return cls(
            kind=obj["type"],
            logical_name=obj["name"],
            scope_path=obj.get("module") or const.ROOT_SCOPE,
            mode=obj.get("mode", const.RESOURCE_MODE_MANAGED),
            instances=[InstanceRecord.from_state(i) for i in obj.get("instances") or []],
            extra={k: v for k, v in obj.items() if k not in known},
        )

    def to_state(self) -> JsonType:
        result: JsonType = {}
        if self.scope_path:
            result["module"] = self.scope_path
        result["mode"] = self.mode
        result["type"] = self.kind
        result["name"] = self.logical_name
        result.update(self.extra)
        result["instances"] = [i.to_state() for i in self.instances]
        return result


class ResourceGraph(BaseModel):
    """
    A snapshot of the persisted state: all resource records in persisted order.
    """

    model_config = pydantic.ConfigDict(frozen=True)

    records: list[ResourceRecord] = []
    version: int = const.STATE_FORMAT_VERSION
    serial: int = 0
    lineage: Optional[str] = None
    extra: dict[str, Any] = {}

    @classmethod
    def from_state(cls, obj: JsonType) -> "ResourceGraph":
        """
        Build a graph from the JSON representation of a state file.

        :raises ValueError: When the document is not a state document.
        """
        if not isinstance(obj, dict):
            raise ValueError("state document should be a JSON object, got %s" % type(obj).__name__)
        resources = obj.get("resources") or []
        if not isinstance(resources, list):
            raise ValueError("resources should be a list")
        try:
            return cls(
                records=[ResourceRecord.from_state(r) for r in resources],
                version=obj.get("version", const.STATE_FORMAT_VERSION),
                serial=obj.get("serial", 0),
                lineage=obj.get("lineage"),
                extra={k: v for k, v in obj.items() if k not in ("resources", "version", "serial", "lineage")},
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise ValueError("invalid resource entry: %s" % e) from e

    def to_state(self) -> JsonType:
        result: JsonType = {"version": self.version, "serial": self.serial}
        if self.lineage is not None:
            result["lineage"] = self.lineage
        result.update(self.extra)
        result["resources"] = [r.to_state() for r in self.records]
        return result

    def replace_records(self, records: Sequence[ResourceRecord]) -> "ResourceGraph":
        """
        Return the next version of this graph with the given records. The lineage is kept, or minted for a new state.
        """
        return self.model_copy(
            update={
                "records": list(records),
                "serial": self.serial + 1,
                "lineage": self.lineage if self.lineage is not None else str(uuid.uuid4()),
            }
        )


class GraphIndex:
    """
    An index over a graph, built in one pass, for repeated lookups by signature and by instance id.
    """

    def __init__(self, graph: Optional[ResourceGraph]) -> None:
        self._by_signature: dict[ResourceSignature, list[ResourceRecord]] = defaultdict(list)
        self._by_id: dict[str, list[ResourceRecord]] = defaultdict(list)
        if graph is None:
            return
        for record in graph.records:
            self._by_signature[record.signature].append(record)
            for instance in record.instances:
                if instance.id is not None:
                    self._by_id[instance.id].append(record)

    def candidates(self, kind: str, logical_name: str) -> Sequence[ResourceRecord]:
        """
        All records with the given type and name, in persisted order
        """
        return self._by_signature.get(ResourceSignature(kind, logical_name), [])

    def with_id(self, id: str, kind: Optional[str] = None, logical_name: Optional[str] = None) -> Sequence[ResourceRecord]:
        """
        All records that have an instance with the given id, optionally restricted to a signature
        """
        return [
            r
            for r in self._by_id.get(id, [])
            if (kind is None or r.kind == kind) and (logical_name is None or r.logical_name == logical_name)
        ]

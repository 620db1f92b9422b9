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
from typing import Callable, Optional

from rekey import const
from rekey.resolver import generate_unique
from rekey.state import InstanceRecord, ResourceGraph, ResourceRecord, ResourceSignature
from rekey.store import StateStore
from rekey.types import AnchorIdStr, ScopePath

LOGGER = logging.getLogger(__name__)

DEFAULT_ANCHOR = ResourceSignature(const.DEFAULT_ANCHOR_TYPE, const.DEFAULT_ANCHOR_NAME)


def find_anchor(
    graph: Optional[ResourceGraph],
    scope_path: str,
    anchor: ResourceSignature = DEFAULT_ANCHOR,
    ignore_module_index: bool = False,
) -> Optional[AnchorIdStr]:
    """
    Return the persisted anchor of the instance at the given scope, or None if it was not created yet.
    """
    if graph is None:
        return None
    for record in graph.records:
        if record.signature != anchor or not record.in_scope(scope_path, ignore_module_index):
            continue
        instance = record.first_instance()
        if instance is None or instance.id is None:
            LOGGER.warning("Anchor record %s has no id, ignoring it", record.address)
            continue
        return AnchorIdStr(instance.id)
    return None


def anchor_record(anchor_id: str, scope_path: str, anchor: ResourceSignature = DEFAULT_ANCHOR) -> ResourceRecord:
    """
    The record that persists an anchor. It has no keepers, so its id never changes once created.
    """
    return ResourceRecord(
        kind=anchor.kind,
        logical_name=anchor.logical_name,
        scope_path=ScopePath(scope_path),
        instances=[InstanceRecord(attributes={const.ATTRIBUTE_ID: anchor_id, const.ATTRIBUTE_RESULT: anchor_id})],
    )


class IdentityAnchor:
    """
    A stable correlation key for a declared instance. It is created once, the first time the instance is evaluated, and it
    survives until the instance is destroyed.

    :param store: The store the anchor is persisted in.
    :param scope_path: The address of the instance.
    """

    def __init__(
        self,
        store: StateStore,
        scope_path: str = const.ROOT_SCOPE,
        anchor: ResourceSignature = DEFAULT_ANCHOR,
        ignore_module_index: bool = False,
        generator: Callable[[], str] = generate_unique,
    ) -> None:
        self.store = store
        self.scope_path = scope_path
        self.anchor = anchor
        self.ignore_module_index = ignore_module_index
        self.generator = generator

    def ensure_anchor(self) -> AnchorIdStr:
        """
        Return the persisted anchor of this instance, creating and persisting a new one when it does not exist yet.
        """
        graph = self.store.fetch_state()
        existing = find_anchor(graph, self.scope_path, self.anchor, self.ignore_module_index)
        if existing is not None:
            return existing

        anchor_id = AnchorIdStr(self.generator())
        if graph is None:
            graph = ResourceGraph()
        record = anchor_record(anchor_id, self.scope_path, self.anchor)
        self.store.write_state(graph.replace_records([*graph.records, record]))
        LOGGER.info("Created anchor %s for %s", anchor_id, record.address)
        return anchor_id

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

import dataclasses
import logging
from collections.abc import Mapping
from typing import Optional

from rekey import const
from rekey.anchor import anchor_record, find_anchor
from rekey.resolver import KeeperResolver
from rekey.state import InstanceRecord, ResourceGraph, ResourceRecord, ResourceSignature
from rekey.store import StateStore
from rekey.types import AnchorIdStr, ScopePath

LOGGER = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class EvaluationResult:
    """
    The outcome of one evaluation.

    :param uuid: The identifier exposed as output. It changes only when the keeper changes.
    :param keeper: The keeper value persisted on the output record.
    :param anchor: The identity anchor of the evaluated instance.
    :param reason: Why the keeper was kept or generated.
    :param changed: True iff the output identifier differs from the previous evaluation.
    """

    uuid: str
    keeper: str
    anchor: str
    reason: const.ResolutionReason
    changed: bool
    graph: ResourceGraph


class Evaluation:
    """
    One read-resolve-write pass for the instance at the given scope path: read the state once, find or mint the identity
    anchor, resolve the keeper and write the resulting state once.

    The output record behaves like an identifier provider resource: its id is regenerated whenever its keepers change.
    """

    def __init__(self, store: StateStore, scope_path: str = const.ROOT_SCOPE, resolver: Optional[KeeperResolver] = None):
        self.store = store
        self.scope_path = scope_path
        self.resolver = resolver if resolver is not None else KeeperResolver()

    def run(self, regenerate: bool = False) -> EvaluationResult:
        """
        :param regenerate: Force a new keeper, and therefore a new output identifier, for this evaluation.
        :raises StateUnavailable: The prior state could not be read. Nothing is written in that case.
        """
        graph = self.store.fetch_state()
        resolver = self.resolver

        anchor_id = find_anchor(graph, self.scope_path, resolver.anchor, resolver.ignore_module_index)
        anchor_created = anchor_id is None
        if anchor_id is None:
            anchor_id = AnchorIdStr(resolver.generator())
            LOGGER.info("No anchor found in scope %r, creating %s", self.scope_path, anchor_id)

        resolution = resolver.resolve_detailed(graph, anchor_id, regenerate)

        keepers = {resolver.keeper_key: resolution.value}
        if resolver.strategy == const.MatchStrategy.direct:
            keepers[resolver.correlation_key] = anchor_id

        records = list(graph.records) if graph is not None else []
        previous = self._find_in_scope(records, resolver.output)
        previous_id = self._reusable_id(records[previous] if previous is not None else None, keepers)
        output_id = previous_id if previous_id is not None else resolver.generator()

        if anchor_created:
            self._put(records, resolver.anchor, anchor_record(anchor_id, self.scope_path, resolver.anchor))
        self._put(records, resolver.output, self._output_record(output_id, keepers))

        new_graph = (graph if graph is not None else ResourceGraph()).replace_records(records)
        self.store.write_state(new_graph)

        changed = previous_id is None
        LOGGER.info(
            "Evaluated %s: keeper %s (%s), uuid %s%s",
            self.scope_path or "root scope",
            resolution.value,
            resolution.reason.value,
            output_id,
            " (changed)" if changed else "",
        )
        return EvaluationResult(
            uuid=output_id,
            keeper=resolution.value,
            anchor=anchor_id,
            reason=resolution.reason,
            changed=changed,
            graph=new_graph,
        )

    def _find_in_scope(self, records: list[ResourceRecord], signature: ResourceSignature) -> Optional[int]:
        for i, record in enumerate(records):
            if record.signature == signature and record.in_scope(self.scope_path, self.resolver.ignore_module_index):
                return i
        return None

    def _put(self, records: list[ResourceRecord], signature: ResourceSignature, record: ResourceRecord) -> None:
        """
        Replace the record with the given signature in this scope, keeping its position, or append it
        """
        position = self._find_in_scope(records, signature)
        if position is None:
            records.append(record)
        else:
            # keep the address as persisted, it can differ in its index suffixes
            records[position] = record.model_copy(update={"scope_path": records[position].scope_path})

    @staticmethod
    def _reusable_id(previous: Optional[ResourceRecord], keepers: Mapping[str, str]) -> Optional[str]:
        if previous is None:
            return None
        instance = previous.first_instance()
        if instance is None or instance.id is None or dict(instance.keepers) != dict(keepers):
            return None
        return instance.id

    def _output_record(self, output_id: str, keepers: Mapping[str, str]) -> ResourceRecord:
        return ResourceRecord(
            kind=self.resolver.output.kind,
            logical_name=self.resolver.output.logical_name,
            scope_path=ScopePath(self.scope_path),
            instances=[
                InstanceRecord(
                    attributes={
                        const.ATTRIBUTE_ID: output_id,
                        const.ATTRIBUTE_RESULT: output_id,
                        const.ATTRIBUTE_KEEPERS: dict(keepers),
                    }
                )
            ],
        )

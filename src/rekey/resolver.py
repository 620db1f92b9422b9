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
import uuid
from collections.abc import Iterable, Sequence
from typing import Callable, Optional

from rekey import config, const
from rekey.exceptions import MalformedRecord
from rekey.state import GraphIndex, ResourceGraph, ResourceRecord, ResourceSignature
from rekey.warnings import AmbiguousMatchWarning, warn

LOGGER = logging.getLogger(__name__)


def generate_unique() -> str:
    """
    A random 128 bit value in canonical uuid notation
    """
    return str(uuid.uuid4())


@dataclasses.dataclass(frozen=True)
class Resolution:
    """
    The outcome of a resolution.

    :param value: The keeper value for this evaluation.
    :param reason: Why this value was selected.
    :param record: The output record of the previous evaluation, if one was found.
    """

    value: str
    reason: const.ResolutionReason
    record: Optional[ResourceRecord] = None

    @property
    def fresh(self) -> bool:
        return self.reason != const.ResolutionReason.kept


class KeeperResolver:
    """
    Decides the keeper value of the output identifier for an evaluation.

    The value is freshly generated when `regenerate` is set or when no previous value exists, otherwise the value stored by
    the previous evaluation is returned unchanged. Resolution is a pure function of the graph: it never raises for lookup
    problems, every branch produces a value.

    :param strategy: How the output record is correlated with the identity anchor.
    :param output: The signature of the output identifier record.
    :param anchor: The signature of the identity anchor record, used by the indirect strategy.
    :param keeper_key: The keeper entry that holds the keeper value.
    :param correlation_key: The keeper entry that references the anchor, used by the direct strategy.
    :param ignore_module_index: Compare scope paths without their count/for_each index suffixes.
    :param generator: Produces fresh unique values.
    """

    def __init__(
        self,
        strategy: const.MatchStrategy = const.MatchStrategy.direct,
        output: ResourceSignature = ResourceSignature(const.DEFAULT_OUTPUT_TYPE, const.DEFAULT_OUTPUT_NAME),
        anchor: ResourceSignature = ResourceSignature(const.DEFAULT_ANCHOR_TYPE, const.DEFAULT_ANCHOR_NAME),
        keeper_key: str = const.KEEPER_KEY,
        correlation_key: str = const.CORRELATION_KEY,
        ignore_module_index: bool = False,
        generator: Callable[[], str] = generate_unique,
    ) -> None:
        if output == anchor:
            raise ValueError(f"The output record and the anchor record can not both be {output}")
        self.strategy = strategy
        self.output = output
        self.anchor = anchor
        self.keeper_key = keeper_key
        self.correlation_key = correlation_key
        self.ignore_module_index = ignore_module_index
        self.generator = generator

    @classmethod
    def from_config(cls, **overrides: object) -> "KeeperResolver":
        """
        Create a resolver with the settings of the resolver config section. Keyword arguments take precedence.
        """
        settings: dict[str, object] = {
            "strategy": config.resolver_strategy.get(),
            "output": ResourceSignature(config.resolver_output_type.get(), config.resolver_output_name.get()),
            "anchor": ResourceSignature(config.resolver_anchor_type.get(), config.resolver_anchor_name.get()),
            "keeper_key": config.resolver_keeper_key.get(),
            "correlation_key": config.resolver_correlation_key.get(),
            "ignore_module_index": config.resolver_ignore_module_index.get(),
        }
        settings.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**settings)  # type: ignore[arg-type]

    def resolve(self, graph: Optional[ResourceGraph], anchor_id: str, regenerate: bool) -> str:
        """
        Compute the keeper value to persist for this evaluation.

        :param graph: The state as of the start of the evaluation, None when no state exists yet.
        :param anchor_id: The identity anchor of the instance being evaluated.
        :param regenerate: Force a new keeper value.
        """
        return self.resolve_detailed(graph, anchor_id, regenerate).value

    def resolve_detailed(self, graph: Optional[ResourceGraph], anchor_id: str, regenerate: bool) -> Resolution:
        if graph is None:
            LOGGER.debug("No state exists yet, generating a fresh keeper for anchor %s", anchor_id)
            return Resolution(self.generator(), const.ResolutionReason.no_state)
        return self._resolve_indexed(GraphIndex(graph), anchor_id, regenerate)

    def resolve_many(
        self, graph: Optional[ResourceGraph], anchor_ids: Iterable[str], regenerate: bool
    ) -> dict[str, str]:
        """
        Resolve several anchors against the same graph, indexing it only once.
        """
        if graph is None:
            return {anchor_id: self.generator() for anchor_id in anchor_ids}
        index = GraphIndex(graph)
        return {anchor_id: self._resolve_indexed(index, anchor_id, regenerate).value for anchor_id in anchor_ids}

    def _resolve_indexed(self, index: GraphIndex, anchor_id: str, regenerate: bool) -> Resolution:
        record = self.find_output_record(index, anchor_id)
        if record is None:
            LOGGER.debug("No %s record found for anchor %s, generating a fresh keeper", self.output, anchor_id)
            return Resolution(self.generator(), const.ResolutionReason.not_found)

        try:
            existing = self.get_keeper(record)
        except MalformedRecord as e:
            LOGGER.warning("%s, generating a fresh keeper", e)
            return Resolution(self.generator(), const.ResolutionReason.not_found)

        if regenerate:
            LOGGER.debug("Regenerating the keeper of %s", record.address)
            return Resolution(self.generator(), const.ResolutionReason.regenerated, record)
        return Resolution(existing, const.ResolutionReason.kept, record)

    def get_keeper(self, record: ResourceRecord) -> str:
        """
        The keeper value persisted on the given output record.

        :raises MalformedRecord: The record has no instance or its first instance has no keeper value.
        """
        instance = record.first_instance()
        if instance is None:
            raise MalformedRecord(record.address, "it has no instances")
        value = instance.keepers.get(self.keeper_key)
        if value is None:
            raise MalformedRecord(record.address, f"keeper {self.keeper_key} is missing")
        return str(value)

    def find_output_record(self, index: GraphIndex, anchor_id: str) -> Optional[ResourceRecord]:
        """
        Find the output record of the previous evaluation of the instance identified by the given anchor.
        """
        if self.strategy == const.MatchStrategy.direct:
            matches = self._match_direct(index, anchor_id)
        else:
            matches = self._match_indirect(index, anchor_id)

        if not matches:
            return None
        if len(matches) > 1:
            warn(AmbiguousMatchWarning(anchor_id, [r.address for r in matches]))
        return matches[0]

    def _match_direct(self, index: GraphIndex, anchor_id: str) -> Sequence[ResourceRecord]:
        result = []
        for record in index.candidates(*self.output):
            instance = record.first_instance()
            if instance is not None and instance.keepers.get(self.correlation_key) == anchor_id:
                result.append(record)
        return result

    def _match_indirect(self, index: GraphIndex, anchor_id: str) -> Sequence[ResourceRecord]:
        anchors = index.with_id(anchor_id, *self.anchor)
        if not anchors:
            return []
        if len(anchors) > 1:
            LOGGER.debug("Anchor %s is present in %s", anchor_id, ", ".join(a.address for a in anchors))

        scopes = [anchor.scope_path for anchor in anchors]
        return [
            record
            for record in index.candidates(*self.output)
            if any(record.in_scope(scope, self.ignore_module_index) for scope in scopes)
        ]

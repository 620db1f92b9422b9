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

import itertools
from collections.abc import Callable, Sequence
from typing import Any, Optional

from rekey import const
from rekey.state import InstanceRecord, ResourceGraph, ResourceRecord


def make_record(
    kind: str = const.DEFAULT_OUTPUT_TYPE,
    name: str = const.DEFAULT_OUTPUT_NAME,
    scope: str = "",
    id: Optional[str] = None,
    keepers: Optional[dict[str, str]] = None,
    **attributes: Any,
) -> ResourceRecord:
    if id is not None:
        attributes["id"] = id
    if keepers is not None:
        attributes["keepers"] = keepers
    return ResourceRecord(kind=kind, logical_name=name, scope_path=scope, instances=[InstanceRecord(attributes=attributes)])


def make_anchor(anchor_id: str, scope: str = "") -> ResourceRecord:
    return make_record(name=const.DEFAULT_ANCHOR_NAME, scope=scope, id=anchor_id)


def make_output(keeper: str, anchor_id: Optional[str] = None, scope: str = "", id: str = "output-id") -> ResourceRecord:
    keepers = {const.KEEPER_KEY: keeper}
    if anchor_id is not None:
        keepers[const.CORRELATION_KEY] = anchor_id
    return make_record(scope=scope, id=id, keepers=keepers)


def make_graph(*records: ResourceRecord) -> ResourceGraph:
    return ResourceGraph(records=list(records), serial=1, lineage="6e7c3a8e-bd58-4a6c-8f3e-1f4b0f2b3c4d")


def unrelated_records() -> Sequence[ResourceRecord]:
    """
    Records of other resources, as found in a real state
    """
    return [
        make_record(kind="aws_s3_bucket", name="logs", id="my-logs-bucket", bucket="my-logs-bucket"),
        make_record(kind="random_uuid", name="this", scope="module.other", id="x", keepers={"key": "other-keeper"}),
        make_record(kind="random_uuid", name="anchor", scope="module.other", id="other-anchor"),
        make_record(kind="random_password", name="db", id="none", keepers={"key": "k"}),
    ]


def sequence_generator(prefix: str = "fresh") -> Callable[[], str]:
    """
    A predictable replacement for the random generator: fresh-1, fresh-2, ...
    """
    counter = itertools.count(1)
    return lambda: f"{prefix}-{next(counter)}"

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

from rekey.anchor import IdentityAnchor
from rekey.evaluation import Evaluation, EvaluationResult
from rekey.exceptions import MalformedRecord, RekeyException, StateUnavailable
from rekey.resolver import KeeperResolver, Resolution
from rekey.state import InstanceRecord, ResourceGraph, ResourceRecord, ResourceSignature
from rekey.store import FileStateStore, MemoryStateStore, StateReader, StateStore

__all__ = [
    "Evaluation",
    "EvaluationResult",
    "FileStateStore",
    "IdentityAnchor",
    "InstanceRecord",
    "KeeperResolver",
    "MalformedRecord",
    "MemoryStateStore",
    "RekeyException",
    "Resolution",
    "ResourceGraph",
    "ResourceRecord",
    "ResourceSignature",
    "StateReader",
    "StateStore",
    "StateUnavailable",
]

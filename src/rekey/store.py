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

import abc
import json
import logging
import os
import tempfile
from typing import Optional

from rekey import const
from rekey.exceptions import StateUnavailable
from rekey.state import ResourceGraph

LOGGER = logging.getLogger(__name__)


class StateReader(abc.ABC):
    """
    Retrieves the persisted resource graph of a deployment.

    The graph reflects the state at the start of an evaluation. The core reads it once per evaluation and never re-queries it
    while resolving.
    """

    @abc.abstractmethod
    def fetch_state(self) -> Optional[ResourceGraph]:
        """
        Return the persisted graph, or None when no state exists yet for this deployment.

        :raises StateUnavailable: The store could not produce a graph.
        """
        raise NotImplementedError()

    @abc.abstractmethod
    def source(self) -> str:
        """
        A description of where the state is read from, used in error reporting.
        """
        raise NotImplementedError()


class StateStore(StateReader):
    """
    A state reader that can also persist the graph produced by an evaluation.

    Stores do not lock. Concurrent evaluations against the same state need a store that provides locking.
    """

    @abc.abstractmethod
    def write_state(self, graph: ResourceGraph) -> None:
        raise NotImplementedError()


class MemoryStateStore(StateStore):
    """
    A volatile store that keeps the graph in memory
    """

    def __init__(self, graph: Optional[ResourceGraph] = None) -> None:
        self._graph = graph

    def fetch_state(self) -> Optional[ResourceGraph]:
        return self._graph

    def write_state(self, graph: ResourceGraph) -> None:
        self._graph = graph

    def source(self) -> str:
        return "memory store"


class FileStateStore(StateStore):
    """
    A store backed by a local JSON state file.

    A missing or empty file means no state exists yet. Any other problem to read or parse the file is reported as
    StateUnavailable.
    """

    def __init__(self, path: str) -> None:
        self.path = os.path.abspath(path)

    def source(self) -> str:
        return f"state file {self.path}"

    def fetch_state(self) -> Optional[ResourceGraph]:
        if not os.path.exists(self.path):
            LOGGER.debug("No state found at %s", self.path)
            return None

        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                content = fh.read()
        except (OSError, UnicodeDecodeError) as e:
            raise StateUnavailable(self.source(), str(e)) from e

        if not content.strip():
            LOGGER.debug("State file %s is empty", self.path)
            return None

        try:
            graph = ResourceGraph.from_state(json.loads(content))
        except ValueError as e:
            raise StateUnavailable(self.source(), f"invalid state document: {e}") from e

        LOGGER.debug("Read %d records (serial %d) from %s", len(graph.records), graph.serial, self.path)
        return graph

    def write_state(self, graph: ResourceGraph) -> None:
        directory = os.path.dirname(self.path)
        os.makedirs(directory, exist_ok=True)
        # write next to the target and rename, so readers never see a partial document
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".rekey-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(graph.to_state(), fh, indent=2)
                fh.write("\n")
            os.replace(tmp_path, self.path)
        except BaseException:
            os.unlink(tmp_path)
            raise
        LOGGER.debug("Wrote %d records (serial %d) to %s", len(graph.records), graph.serial, self.path)


def get_store(location: str) -> StateStore:
    """
    Build the store for the given location: memory:// for a volatile store, otherwise the path of a state file.
    """
    if location == const.MEMORY_STORE_URL:
        return MemoryStateStore()
    return FileStateStore(location)

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

from typing import Optional


class RekeyException(Exception):
    """
    Base class for all rekey errors
    """


class StateUnavailable(RekeyException):
    """
    The prior state could not be retrieved from its store. This must abort the evaluation: treating it as a first run would
    mint fresh values and cause unwanted drift.

    :param source: A description of the store that failed, e.g. the path of the state file.
    """

    def __init__(self, source: str, reason: Optional[str] = None) -> None:
        self.source = source
        self.reason = reason
        msg = f"Failed to retrieve prior state from {source}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class MalformedRecord(RekeyException):
    """
    A matched record does not carry the persisted keeper value.
    """

    def __init__(self, address: str, reason: str) -> None:
        self.address = address
        super().__init__(f"Record {address} is malformed: {reason}")


class CLIException(RekeyException):
    def __init__(self, msg: str, exitcode: int = 1) -> None:
        self.exitcode = exitcode
        super().__init__(msg)

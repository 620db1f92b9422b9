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
import warnings
from enum import Enum
from typing import Literal, Optional, TextIO, Union

from rekey import const


class RekeyWarning(Warning):
    """
    Base class for rekey warnings.
    Those warnings won't contain the python trace and are intended to be shown to operators.
    """

    def __init__(self, *args: object):
        Warning.__init__(self, *args)


class AmbiguousMatchWarning(RekeyWarning):
    """
    More than one record in the state matches the identity anchor. The first one in persisted order is used.

    :param anchor_id: The anchor that was looked up.
    :param addresses: The addresses of all candidate records, in persisted order.
    """

    def __init__(self, anchor_id: str, addresses: list[str]) -> None:
        self.anchor_id = anchor_id
        self.addresses = addresses
        super().__init__(
            "Found %d records for anchor %s (%s), using %s" % (len(addresses), anchor_id, ", ".join(addresses), addresses[0])
        )


REGEX_REKEY_MODULE: str = r"^(rekey|rekey\..*)$"


class WarningBehaviour(Enum):
    WARN: Literal["default"] = "default"
    IGNORE: Literal["ignore"] = "ignore"
    ERROR: Literal["error"] = "error"


class WarningsManager:
    """
    Manages how rekey warnings are shown.
    """

    @classmethod
    def apply_config(cls, behaviour: Optional[Union[str, WarningBehaviour]] = None) -> None:
        """
        Route warnings to the logging framework and apply the requested behaviour to rekey warnings.

        :param behaviour: one of warn, ignore or error. Defaults to warn.
        """
        warnings.showwarning = cls._showwarning
        if behaviour is None:
            behaviour = WarningBehaviour.WARN
        elif isinstance(behaviour, str):
            options = {"warn": WarningBehaviour.WARN, "ignore": WarningBehaviour.IGNORE, "error": WarningBehaviour.ERROR}
            if behaviour not in options:
                raise ValueError("Illegal option %s for warnings" % behaviour)
            behaviour = options[behaviour]
        warnings.filterwarnings(behaviour.value, category=RekeyWarning, module=REGEX_REKEY_MODULE)

    @classmethod
    def _showwarning(
        cls,
        message: Union[str, Warning],
        category: type[Warning],
        filename: str,
        lineno: int,
        file: Optional[TextIO] = None,
        line: Optional[str] = None,
    ) -> None:
        """
        Shows a warning. Rekey warnings are logged without their location, other warnings are formatted as usual.
        """
        if issubclass(category, RekeyWarning):
            text = "%s: %s" % (category.__name__, message)
            logger = logging.getLogger(const.NAME_WARNINGS_LOGGER)
        else:
            text = warnings.formatwarning(message, category, filename, lineno, line)  # type: ignore
            logger = logging.getLogger("py.warnings")

        if file is not None:
            try:
                file.write(f"{text}\n")
            except OSError:
                pass
        else:
            logger.warning("%s", text)


def warn(*args, **kwargs) -> None:
    """
    A method that proxies calls to `warnings.warn()`, so warnings are attributed to a rekey module.
    """
    warnings.warn(*args, **kwargs)

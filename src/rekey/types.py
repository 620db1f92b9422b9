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

# This file defines named type definitions for the rekey code base

from typing import Any, NewType

import pydantic

JsonType = dict[str, Any]

ScopePath = NewType("ScopePath", str)
"""
    The address of the enclosing module instance, e.g. module.app[0].module.ids. The root scope is the empty string.
"""

AnchorIdStr = NewType("AnchorIdStr", str)
"""
    The persisted id of an identity anchor
"""

ResourceType = NewType("ResourceType", str)
"""
    The type of the resource, e.g. random_uuid
"""


class BaseModel(pydantic.BaseModel):
    """
    Base class for all data objects in rekey
    """

    model_config = pydantic.ConfigDict(extra="forbid")

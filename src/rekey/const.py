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

from enum import Enum


class MatchStrategy(str, Enum):
    """
    How the output record is correlated with the identity anchor.
    """

    # the output record's keepers carry the anchor id under the correlation key
    direct = "direct"
    # anchor record -> scope path -> sibling output record
    indirect = "indirect"


class ResolutionReason(str, Enum):
    no_state = "no-state"
    not_found = "not-found"
    regenerated = "regenerated"
    kept = "kept"


# Defaults of the resource signatures, modelled after the random provider
DEFAULT_OUTPUT_TYPE = "random_uuid"
DEFAULT_OUTPUT_NAME = "this"
DEFAULT_ANCHOR_TYPE = "random_uuid"
DEFAULT_ANCHOR_NAME = "anchor"

# Reserved keeper keys
KEEPER_KEY = "key"
CORRELATION_KEY = "anchor"

ROOT_SCOPE = ""

# Persisted state layout
STATE_FORMAT_VERSION = 4
RESOURCE_MODE_MANAGED = "managed"
ATTRIBUTE_ID = "id"
ATTRIBUTE_KEEPERS = "keepers"
ATTRIBUTE_RESULT = "result"

MEMORY_STORE_URL = "memory://"

ENVIRON_FORCE_TTY = "REKEY_FORCE_TTY"
ENVIRON_PREFIX = "REKEY"

NAME_WARNINGS_LOGGER = "rekey.warnings"

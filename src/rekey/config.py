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
import os
from collections import abc, defaultdict
from configparser import ConfigParser, Interpolation
from enum import Enum
from typing import Callable, Generic, Optional, TypeVar, Union, overload

from rekey import const

LOGGER = logging.getLogger(__name__)


def _normalize_name(name: str) -> str:
    return name.replace("_", "-")


def _get_environment_variable(section: str, name: str) -> str:
    return f"{const.ENVIRON_PREFIX}_{section}_{name}".replace("-", "_").upper()


def _get_from_env(section: str, name: str) -> Optional[str]:
    return os.environ.get(_get_environment_variable(section, name), default=None)


class LenientConfigParser(ConfigParser):
    def optionxform(self, name: str) -> str:
        name = _normalize_name(name)
        return super().optionxform(name)


class Config:
    __instance: Optional[ConfigParser] = None
    __config_definition: dict[str, dict[str, "Option"]] = defaultdict(lambda: {})

    @classmethod
    def get_config_options(cls) -> dict[str, dict[str, "Option"]]:
        return cls.__config_definition

    @classmethod
    def load_config(
        cls,
        config_file: Optional[str] = None,
        config_dir: str = "/etc/rekey/rekey.d",
        main_cfg_file: str = "/etc/rekey/rekey.cfg",
    ) -> None:
        """
        Load the configuration files. Files later in the chain override options set by earlier files:
        the main file, the .cfg files in the config dir (sorted by name), the user and working directory files and
        finally the explicitly requested file.
        """
        cfg_files_in_config_dir: list[str]
        if os.path.isdir(config_dir):
            cfg_files_in_config_dir = sorted(
                [os.path.join(config_dir, f) for f in os.listdir(config_dir) if f.endswith(".cfg")]
            )
        else:
            cfg_files_in_config_dir = []

        local_cfg_files: list[str] = [os.path.expanduser("~/.rekey.cfg"), ".rekey.cfg"]

        files: list[str] = [main_cfg_file] + cfg_files_in_config_dir + local_cfg_files
        if config_file is not None:
            files.append(config_file)

        config = LenientConfigParser(interpolation=Interpolation())
        loaded = config.read(files)
        LOGGER.debug("Loaded configuration from %s", loaded)
        cls.__instance = config

    @classmethod
    def _get_instance(cls) -> ConfigParser:
        if cls.__instance is None:
            cls.load_config()
        assert cls.__instance is not None
        return cls.__instance

    @classmethod
    def _reset(cls) -> None:
        cls.__instance = None

    @overload
    @classmethod
    def get(cls) -> ConfigParser: ...

    @overload
    @classmethod
    def get(cls, section: str, name: str, default_value: Optional[str] = None) -> Optional[str]: ...

    @classmethod
    def get(
        cls, section: Optional[str] = None, name: Optional[str] = None, default_value: Optional[str] = None
    ) -> Union[str, ConfigParser, None]:
        """
        Get the entire config or get a value directly
        """
        cfg = cls._get_instance()
        if section is None:
            return cfg

        assert name is not None
        name = _normalize_name(name)

        val = _get_from_env(section, name)
        if val is not None:
            LOGGER.debug("Setting %s:%s was set using an environment variable", section, name)
            return val
        return cfg.get(section, name, fallback=default_value)

    @classmethod
    def is_set(cls, section: str, name: str) -> bool:
        """Check if a certain config option was specified in the config file or the environment."""
        name = _normalize_name(name)
        if _get_from_env(section, name) is not None:
            return True
        return section in cls._get_instance() and name in cls._get_instance()[section]

    @classmethod
    def set(cls, section: str, name: str, value: str) -> None:
        """
        Override a value
        """
        name = _normalize_name(name)

        if section not in cls._get_instance():
            cls._get_instance().add_section(section)
        cls._get_instance().set(section, name, value)

    @classmethod
    def register_option(cls, option: "Option") -> None:
        cls.__config_definition[option.section][option.name] = option


def is_bool(value: Union[bool, str]) -> bool:
    """Boolean value, represented as any of true, false, on, off, yes, no, 1, 0. (Case-insensitive)"""
    if isinstance(value, bool):
        return value
    boolean_states: abc.Mapping[str, bool] = Config._get_instance().BOOLEAN_STATES
    if value.lower() not in boolean_states:
        raise ValueError("Not a boolean: %s" % value)
    return boolean_states[value.lower()]


def is_str(value: str) -> str:
    """str"""
    return str(value)


def is_str_opt(value: Optional[str]) -> Optional[str]:
    """optional str"""
    if value is None:
        return None
    return str(value)


E = TypeVar("E", bound=Enum)


def is_enum(enum_type: type[E]) -> Callable[[Union[str, E]], E]:
    """
    Build a validator that accepts the values of the given enum
    """

    def validator(value: Union[str, E]) -> E:
        if isinstance(value, enum_type):
            return value
        try:
            return enum_type(str(value).strip().lower())
        except ValueError:
            raise ValueError("%s is not one of %s" % (value, ", ".join(str(e.value) for e in enum_type)))

    validator.__doc__ = "enum: %s" % ", ".join(str(e.value) for e in enum_type)
    return validator


T = TypeVar("T")


class Option(Generic[T]):
    """
    Defines an option and exposes it for use

    All config options should be defined prior to use, at the module level.

    :param section: section in the config file
    :param name: name of the option
    :param default: default value for this option
        the default value is either a value or a function.
        If it is a function, its return value is used as the actual default value.
    :param documentation: the documentation for this option
    :param validator: a function responsible for turning the string representation of the option into the correct type.
        Its docstring is used as representation for the type of the option.
    """

    def __init__(
        self,
        section: str,
        name: str,
        default: Union[T, None, Callable[[], T]],
        documentation: str,
        validator: Callable[[str], T] = is_str,
    ) -> None:
        self.section = section
        self.name = _normalize_name(name)
        self.validator = validator
        self.documentation = documentation
        self.default = default
        Config.register_option(self)

    def get(self) -> T:
        out = Config.get(self.section, self.name)
        if out is None:
            return self.get_default_value()
        try:
            return self.validate(out)
        except ValueError as e:
            raise ValueError(f"Invalid value for option {self.section}.{self.name}: {e}") from e

    def get_type(self) -> Optional[str]:
        if callable(self.validator):
            return self.validator.__doc__
        return None

    def get_environment_variable(self) -> str:
        return _get_environment_variable(self.section, self.name)

    def validate(self, value: str) -> T:
        return self.validator(value)

    def get_default_value(self) -> T:
        defa = self.default
        if callable(defa):
            return defa()
        return defa  # type: ignore

    def set(self, value: str) -> None:
        """Only for tests"""
        Config.set(self.section, self.name, value)


#############################
# Config
#
# Global config options are defined here
#############################
logging_config = Option(
    "config",
    "logging-config",
    None,
    "The path to a YAML file that contains a logging configuration in Python's dictConfig format.",
    is_str_opt,
)
warnings_behaviour = Option(
    "config", "warnings", "warn", "How rekey warnings are handled: warn, ignore or error.", is_str
)

#############################
# State
#############################
state_path = Option(
    "state",
    "path",
    "terraform.tfstate",
    "The location of the persisted state. Either the path of a JSON state file or memory:// for a volatile store.",
    is_str,
)
state_scope = Option(
    "state", "scope", const.ROOT_SCOPE, "The scope path of the instance that is evaluated. Empty for the root scope.", is_str
)

#############################
# Resolver
#############################
resolver_strategy: Option[const.MatchStrategy] = Option(
    "resolver",
    "strategy",
    const.MatchStrategy.direct,
    "How the output record is correlated with the identity anchor: direct or indirect.",
    is_enum(const.MatchStrategy),
)
resolver_output_type = Option(
    "resolver", "output-type", const.DEFAULT_OUTPUT_TYPE, "The resource type of the output identifier record.", is_str
)
resolver_output_name = Option(
    "resolver", "output-name", const.DEFAULT_OUTPUT_NAME, "The logical name of the output identifier record.", is_str
)
resolver_anchor_type = Option(
    "resolver", "anchor-type", const.DEFAULT_ANCHOR_TYPE, "The resource type of the identity anchor record.", is_str
)
resolver_anchor_name = Option(
    "resolver", "anchor-name", const.DEFAULT_ANCHOR_NAME, "The logical name of the identity anchor record.", is_str
)
resolver_keeper_key = Option(
    "resolver", "keeper-key", const.KEEPER_KEY, "The keeper entry of the output record that holds the keeper value.", is_str
)
resolver_correlation_key = Option(
    "resolver",
    "correlation-key",
    const.CORRELATION_KEY,
    "The keeper entry of the output record that references the anchor (direct strategy only).",
    is_str,
)
resolver_ignore_module_index = Option(
    "resolver",
    "ignore-module-index",
    False,
    "Ignore count and for_each index suffixes when comparing scope paths.",
    is_bool,
)

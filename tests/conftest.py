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
import warnings

import pytest
from click import testing

import rekey.app
from rekey.config import Config
from rekey.logging import RekeyLoggerConfig
from rekey.store import FileStateStore, MemoryStateStore


@pytest.fixture(autouse=True)
def reset_config(tmp_path, monkeypatch):
    """
    Make sure no config file or environment variable of the machine running the tests leaks into a test.
    """
    for name in list(os.environ):
        if name.startswith("REKEY_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    Config.load_config(config_dir=str(tmp_path / "rekey.d"), main_cfg_file=str(tmp_path / "rekey.cfg"))
    yield
    Config._reset()


@pytest.fixture(autouse=True)
def cleanup_logger():
    root_log_level = logging.root.level
    RekeyLoggerConfig.clean_instance()
    with warnings.catch_warnings():
        yield
    RekeyLoggerConfig.clean_instance()
    # Make sure we maintain the initial root log level, so that logging in pytest works as expected.
    logging.root.setLevel(root_log_level)


@pytest.fixture
def memory_store() -> MemoryStateStore:
    return MemoryStateStore()


@pytest.fixture
def state_file(tmp_path) -> str:
    return str(tmp_path / "state" / "terraform.tfstate")


@pytest.fixture
def file_store(state_file) -> FileStateStore:
    return FileStateStore(state_file)


class CLI:
    def run(self, *args: str, **kwargs) -> testing.Result:
        # the logger of the CLI is bound to the stderr stream of a single invocation
        RekeyLoggerConfig.clean_instance()
        runner = testing.CliRunner()
        return runner.invoke(cli=rekey.app.cmd, args=list(args), catch_exceptions=False, **kwargs)


@pytest.fixture
def cli(caplog):
    # caplog will break this code when emitting any log line to cli
    # due to mysterious interference when juggling with sys.stdout
    # https://github.com/pytest-dev/pytest/issues/10553
    with caplog.at_level(logging.FATAL):
        yield CLI()

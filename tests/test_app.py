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

import json
import os
import uuid

from rekey.state import ResourceGraph
from rekey.store import FileStateStore
from utils import make_anchor, make_graph, make_output


def test_apply_scenario(cli, state_file):
    result = cli.run("--state", state_file, "--scope", "module.app", "apply")
    assert result.exit_code == 0
    first = result.stdout.strip()
    assert str(uuid.UUID(first)) == first

    result = cli.run("--state", state_file, "--scope", "module.app", "apply")
    assert result.exit_code == 0
    assert result.stdout.strip() == first

    result = cli.run("--state", state_file, "--scope", "module.app", "apply", "--regenerate")
    assert result.exit_code == 0
    regenerated = result.stdout.strip()
    assert regenerated != first

    result = cli.run("--state", state_file, "--scope", "module.app", "apply")
    assert result.exit_code == 0
    assert result.stdout.strip() == regenerated


def test_apply_json_output(cli, state_file):
    result = cli.run("--state", state_file, "--strategy", "indirect", "apply", "-o", "json")
    assert result.exit_code == 0
    first = json.loads(result.stdout)
    assert first["reason"] == "no-state"
    assert first["changed"] is True

    result = cli.run("--state", state_file, "--strategy", "indirect", "apply", "-o", "json")
    second = json.loads(result.stdout)
    assert second["reason"] == "kept"
    assert second["changed"] is False
    assert second["uuid"] == first["uuid"]
    assert second["keeper"] == first["keeper"]
    assert second["anchor"] == first["anchor"]

    graph = FileStateStore(state_file).fetch_state()
    keepers = graph.records[1].first_instance().keepers
    assert keepers == {"key": first["keeper"]}


def test_state_from_config(cli, tmp_path):
    with open(".rekey.cfg", "w", encoding="utf-8") as fh:
        fh.write("[state]\npath=configured.tfstate\nscope=module.cfg\n")

    result = cli.run("apply")
    assert result.exit_code == 0
    graph = FileStateStore(str(tmp_path / "configured.tfstate")).fetch_state()
    assert [r.address for r in graph.records] == ["module.cfg.random_uuid.anchor", "module.cfg.random_uuid.this"]


def test_config_option(cli, tmp_path):
    config_file = tmp_path / "custom.cfg"
    config_file.write_text("[state]\npath=custom.tfstate\n")
    result = cli.run("--config", str(config_file), "apply")
    assert result.exit_code == 0
    assert os.path.exists(tmp_path / "custom.tfstate")


def test_state_unavailable(cli, state_file):
    os.makedirs(os.path.dirname(state_file))
    with open(state_file, "w", encoding="utf-8") as fh:
        fh.write("{broken")

    result = cli.run("--state", state_file, "apply")
    assert result.exit_code == 1
    assert f"Error: Failed to retrieve prior state from state file {state_file}" in result.output
    # the state is not replaced by a fresh one
    with open(state_file, "r", encoding="utf-8") as fh:
        assert fh.read() == "{broken"


def test_anchor(cli, state_file):
    result = cli.run("--state", state_file, "--scope", "module.app", "anchor")
    assert result.exit_code == 0
    anchor = result.stdout.strip()

    result = cli.run("--state", state_file, "--scope", "module.app", "anchor")
    assert result.stdout.strip() == anchor

    result = cli.run("--state", state_file, "--scope", "module.app", "apply", "-o", "json")
    assert json.loads(result.stdout)["anchor"] == anchor


def test_resolve(cli, state_file):
    result = cli.run("--state", state_file, "apply", "-o", "json")
    evaluation = json.loads(result.stdout)
    before = FileStateStore(state_file).fetch_state()

    result = cli.run("--state", state_file, "resolve", "--anchor", evaluation["anchor"])
    assert result.exit_code == 0
    assert result.stdout.strip() == evaluation["keeper"]

    result = cli.run("--state", state_file, "resolve", "--anchor", evaluation["anchor"], "--regenerate")
    assert result.exit_code == 0
    assert result.stdout.strip() != evaluation["keeper"]

    result = cli.run("--state", state_file, "resolve", "--anchor", "unknown")
    assert result.exit_code == 0
    assert result.stdout.strip() != evaluation["keeper"]

    # resolve never writes
    assert FileStateStore(state_file).fetch_state() == before


def test_records(cli, state_file):
    result = cli.run("--state", state_file, "records")
    assert result.exit_code == 0
    assert "No records" in result.output

    FileStateStore(state_file).write_state(ResourceGraph())
    result = cli.run("--state", state_file, "records")
    assert "No records" in result.output

    cli.run("--state", state_file, "--scope", "module.app", "apply")
    # the table is sized to the terminal
    result = cli.run("--state", state_file, "records", env={"COLUMNS": "400"})
    assert result.exit_code == 0
    assert "Address" in result.stdout
    assert "module.app.random_uuid.anchor" in result.stdout
    assert "module.app.random_uuid.this" in result.stdout
    assert "key=" in result.stdout


def test_invalid_strategy(cli, state_file):
    result = cli.run("--state", state_file, "--strategy", "fuzzy", "apply")
    assert result.exit_code == 2


def test_memory_store(cli):
    result = cli.run("--state", "memory://", "apply")
    assert result.exit_code == 0
    assert not os.path.exists("terraform.tfstate")


def test_resolve_empty_anchor(cli, state_file):
    result = cli.run("--state", state_file, "resolve", "--anchor", " ")
    assert result.exit_code == 1
    assert "Error: The anchor can not be empty" in result.output


def test_undecodable_state(cli, state_file):
    os.makedirs(os.path.dirname(state_file))
    with open(state_file, "wb") as fh:
        fh.write(b'{"version": 4, "resources": [], "x": "\xff\xfe"}')

    result = cli.run("--state", state_file, "apply")
    assert result.exit_code == 1
    assert f"Error: Failed to retrieve prior state from state file {state_file}" in result.output


def write_ambiguous_state(state_file: str) -> None:
    FileStateStore(state_file).write_state(
        make_graph(
            make_anchor("a-1", scope="module.app"),
            make_output("keeper-first", "a-1", scope="module.app", id="u-1"),
            make_output("keeper-second", "a-1", scope="module.app", id="u-2"),
        )
    )


def test_ambiguous_match_warns(cli, state_file):
    write_ambiguous_state(state_file)

    result = cli.run("--state", state_file, "--scope", "module.app", "apply", "-o", "json")
    assert result.exit_code == 0
    assert json.loads(result.stdout)["keeper"] == "keeper-first"


def test_ambiguous_match_as_error(cli, state_file):
    write_ambiguous_state(state_file)
    before = FileStateStore(state_file).fetch_state()
    with open(".rekey.cfg", "w", encoding="utf-8") as fh:
        fh.write("[config]\nwarnings=error\n")

    result = cli.run("--state", state_file, "--scope", "module.app", "apply")
    assert result.exit_code == 1
    assert "Error: AmbiguousMatchWarning: Found 2 records for anchor a-1" in result.output
    assert FileStateStore(state_file).fetch_state() == before


def test_invalid_resolver_option(cli, state_file, monkeypatch):
    monkeypatch.setenv("REKEY_RESOLVER_IGNORE_MODULE_INDEX", "maybe")
    result = cli.run("--state", state_file, "apply")
    assert result.exit_code == 1
    assert "Error: Invalid resolver configuration: Invalid value for option resolver.ignore-module-index" in result.output
    assert not os.path.exists(state_file)


def test_output_same_as_anchor(cli, state_file):
    with open(".rekey.cfg", "w", encoding="utf-8") as fh:
        fh.write("[resolver]\nanchor-name=this\n")
    result = cli.run("--state", state_file, "anchor")
    assert result.exit_code == 1
    assert "can not both be random_uuid.this" in result.output


def test_options(cli, monkeypatch):
    with open(".rekey.cfg", "w", encoding="utf-8") as fh:
        fh.write("[state]\npath=configured.tfstate\n")
    monkeypatch.setenv("REKEY_RESOLVER_STRATEGY", "indirect")
    monkeypatch.setenv("REKEY_RESOLVER_IGNORE_MODULE_INDEX", "maybe")

    result = cli.run("options", env={"COLUMNS": "1000"})
    assert result.exit_code == 0
    rows = {
        cells[0]: cells[1:]
        for cells in (
            [cell.strip() for cell in line.strip("|").split("|")] for line in result.stdout.splitlines() if line.startswith("|")
        )
    }
    assert rows["state.path"][:4] == ["str", "configured.tfstate", "config file", "REKEY_STATE_PATH"]
    assert rows["resolver.strategy"][:3] == ["enum: direct, indirect", "indirect", "environment"]
    assert rows["resolver.keeper-key"][1:3] == ["key", "default"]
    assert rows["resolver.ignore-module-index"][1].startswith("invalid: ")
    assert rows["state.scope"][1] == ""

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

import functools
import json
import logging
import os
import shutil
import sys
from enum import Enum
from typing import Any, Callable, Optional, TypeVar

import click
import texttable

from rekey import config, const
from rekey.anchor import IdentityAnchor
from rekey.config import Config
from rekey.evaluation import Evaluation
from rekey.exceptions import CLIException, StateUnavailable
from rekey.logging import RekeyLoggerConfig
from rekey.resolver import KeeperResolver
from rekey.state import ResourceGraph
from rekey.store import StateStore, get_store
from rekey.warnings import RekeyWarning, WarningsManager

LOGGER = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class Session:
    """
    The settings shared by all subcommands
    """

    def __init__(self, state: Optional[str], scope: Optional[str], strategy: Optional[str]) -> None:
        self.location = state if state is not None else config.state_path.get()
        self.scope = scope if scope is not None else config.state_scope.get()
        self.strategy = config.is_enum(const.MatchStrategy)(strategy) if strategy is not None else None

    def get_store(self) -> StateStore:
        return get_store(self.location)

    def get_resolver(self) -> KeeperResolver:
        try:
            return KeeperResolver.from_config(strategy=self.strategy)
        except ValueError as e:
            raise CLIException("Invalid resolver configuration: %s" % e, exitcode=1)


def handle_errors(func: F) -> F:
    """
    Turn rekey errors into a clean CLI error. A failure to read the prior state always stops the command.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except StateUnavailable as e:
            LOGGER.debug("Aborting, prior state is unavailable", exc_info=True)
            raise click.ClickException(str(e))
        except CLIException as e:
            exc = click.ClickException(str(e))
            exc.exit_code = e.exitcode
            raise exc
        except RekeyWarning as e:
            # raised when config.warnings is set to error
            raise click.ClickException("%s: %s" % (type(e).__name__, e))

    return wrapper  # type: ignore[return-value]


def get_table(header: list[str], rows: list[list[str]]) -> str:
    """
    Returns a table that would fit in the current terminal.
    """
    width, _ = shutil.get_terminal_size()

    table = texttable.Texttable(max_width=width)
    table.set_deco(texttable.Texttable.HEADER | texttable.Texttable.BORDER | texttable.Texttable.VLINES)
    table.set_cols_dtype(["t"] * len(header))
    table.header(header)
    for row in rows:
        table.add_row(row)
    return table.draw()


@click.group(help="Keeper values that only change when you ask for it")
@click.option("--config", "config_file", help="Use this config file in addition to the default ones", default=None)
@click.option("-v", "--verbose", count=True, help="Log level for messages going to the console. Repeat for more output")
@click.option("--logging-config", help="A YAML file with a logging configuration in dictConfig format", default=None)
@click.option("--state", help="The state file, or memory:// (defaults to the state.path option)", default=None)
@click.option("--scope", help="The scope path of the instance (defaults to the state.scope option)", default=None)
@click.option(
    "--strategy",
    type=click.Choice([s.value for s in const.MatchStrategy]),
    help="How the output record is correlated with the anchor (defaults to the resolver.strategy option)",
    default=None,
)
@click.pass_context
def cmd(
    ctx: click.Context,
    config_file: Optional[str],
    verbose: int,
    logging_config: Optional[str],
    state: Optional[str],
    scope: Optional[str],
    strategy: Optional[str],
) -> None:
    Config.load_config(config_file)
    RekeyLoggerConfig.get_instance(sys.stderr).apply_options(verbose=verbose, logging_config=logging_config)
    try:
        WarningsManager.apply_config(config.warnings_behaviour.get())
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="config.warnings")
    ctx.obj = Session(state, scope, strategy)


@cmd.command(name="apply", help="Run one evaluation: resolve the keeper, persist it and print the uuid")
@click.option("--regenerate", is_flag=True, default=False, help="Force a new keeper, and therefore a new uuid")
@click.option("--output", "-o", type=click.Choice(["text", "json"]), default="text", help="The output format")
@click.pass_obj
@handle_errors
def apply(session: Session, regenerate: bool, output: str) -> None:
    evaluation = Evaluation(session.get_store(), session.scope, session.get_resolver())
    result = evaluation.run(regenerate=regenerate)
    if output == "json":
        click.echo(
            json.dumps(
                {
                    "uuid": result.uuid,
                    "keeper": result.keeper,
                    "anchor": result.anchor,
                    "reason": result.reason.value,
                    "changed": result.changed,
                }
            )
        )
    else:
        click.echo(result.uuid)


@cmd.command(name="resolve", help="Print the keeper that an evaluation would persist, without writing anything")
@click.option("--anchor", required=True, help="The identity anchor of the instance")
@click.option("--regenerate", is_flag=True, default=False, help="Force a new keeper")
@click.pass_obj
@handle_errors
def resolve(session: Session, anchor: str, regenerate: bool) -> None:
    if not anchor.strip():
        raise CLIException("The anchor can not be empty", exitcode=1)
    graph = session.get_store().fetch_state()
    click.echo(session.get_resolver().resolve(graph, anchor, regenerate))


@cmd.command(name="anchor", help="Print the identity anchor of the instance, creating it if needed")
@click.pass_obj
@handle_errors
def anchor(session: Session) -> None:
    resolver = session.get_resolver()
    identity = IdentityAnchor(
        session.get_store(),
        session.scope,
        anchor=resolver.anchor,
        ignore_module_index=resolver.ignore_module_index,
    )
    click.echo(identity.ensure_anchor())


@cmd.command(name="records", help="List the records in the state")
@click.pass_obj
@handle_errors
def records(session: Session) -> None:
    graph: Optional[ResourceGraph] = session.get_store().fetch_state()
    if graph is None or not graph.records:
        click.echo("No records in %s." % session.location, err=True)
        return

    rows = []
    for record in graph.records:
        for instance in record.instances:
            keepers = ", ".join(f"{k}={v}" for k, v in sorted(instance.keepers.items()))
            rows.append([record.address, instance.id or "", keepers])
    click.echo(get_table(["Address", "ID", "Keepers"], rows))


@cmd.command(name="options", help="List the configuration options, their current value and where it comes from")
def options() -> None:
    rows = []
    for section, section_options in sorted(Config.get_config_options().items()):
        for name, option in sorted(section_options.items()):
            try:
                value = option.get()
            except ValueError as e:
                value = "invalid: %s" % e
            if isinstance(value, Enum):
                value = value.value

            if not Config.is_set(section, name):
                source = "default"
            elif option.get_environment_variable() in os.environ:
                source = "environment"
            else:
                source = "config file"

            rows.append(
                [
                    f"{section}.{name}",
                    option.get_type() or "",
                    "" if value is None else str(value),
                    source,
                    option.get_environment_variable(),
                    option.documentation,
                ]
            )
    click.echo(get_table(["Option", "Type", "Value", "Source", "Environment variable", "Description"], rows))


def main() -> None:
    cmd()


if __name__ == "__main__":
    main()

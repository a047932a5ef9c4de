"""Chainconf CLI -- inspect and convert chains of configuration sources.

Usage:
    chainconf show <source>
    chainconf resolve <source> <name> [--types module:attribute]
    chainconf convert <source> <target>
"""

import importlib
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from chainconf.builders import load_chain
from chainconf.chain_loader import ChainLoader, LoadedChain
from chainconf.domain import to_plain
from chainconf.errors import ConfigurationError
from chainconf.formats import default_formats
from chainconf.types import TypeRegistry

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _fail(error: Exception):
    click.echo(click.style(f"Error: {error}", fg="red"), err=True)
    sys.exit(1)


def _load(source: str) -> LoadedChain:
    try:
        return ChainLoader(default_formats()).load(source)
    except ConfigurationError as e:
        _fail(e)


def _import_types(spec: Optional[str]) -> TypeRegistry:
    """Import a TypeRegistry given as 'package.module:attribute'."""
    if not spec:
        return TypeRegistry()
    module_name, _, attribute = spec.partition(":")
    try:
        types = getattr(importlib.import_module(module_name), attribute or "types")
    except (ImportError, AttributeError) as e:
        raise click.BadParameter(f"cannot import {spec!r}: {e}", param_hint="--types") from e
    if not isinstance(types, TypeRegistry):
        raise click.BadParameter(f"{spec!r} is not a TypeRegistry", param_hint="--types")
    return types


def _format_value(value) -> str:
    plain = to_plain(value)
    return plain if isinstance(plain, str) else repr(plain)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version="0.1.0", prog_name="chainconf")
@click.option("--verbose", "-v", is_flag=True, help="Log loading and resolution steps.")
def cli(verbose: bool):
    """Chainconf -- chained component configuration."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# show
# ---------------------------------------------------------------------------


@cli.command("show")
@click.argument("source", type=click.Path(dir_okay=False))
def show(source: str):
    """List the merged globals and components of a chain."""
    chain = _load(source)

    click.echo(click.style("Sources", bold=True))
    for identity in chain.sources:
        click.echo(f"  {identity}")

    click.echo(click.style("Globals", bold=True))
    for name in chain.symbols:
        try:
            value = chain.symbols.lookup(name)
        except ConfigurationError as e:
            value = click.style(f"<{e}>", fg="red")
        click.echo(f"  {name} = {value}")

    click.echo(click.style("Components", bold=True))
    for record in chain.definitions.records():
        based_on = f" based-on {record.parent_name}" if record.parent_name else ""
        type_tag = record.type_tag or "inherited"
        click.echo(f"  {record.name} ({type_tag}){based_on}  [{record.origin}]")


# ---------------------------------------------------------------------------
# resolve
# ---------------------------------------------------------------------------


@cli.command("resolve")
@click.argument("source", type=click.Path(dir_okay=False))
@click.argument("name")
@click.option(
    "--types",
    "types_spec",
    default=None,
    help="TypeRegistry to check type overrides against, as module:attribute.",
)
def resolve(source: str, name: str, types_spec: Optional[str]):
    """Show the based-on chain and effective properties of one component."""
    types = _import_types(types_spec)
    try:
        manager = load_chain(source, types)
        chain = manager.override_chain(name)
        record = manager.effective_record(name)
    except ConfigurationError as e:
        _fail(e)

    click.echo(" -> ".join(r.name for r in chain))
    click.echo(f"type: {record.type_tag}")
    for key, value in record.properties.items():
        click.echo(f"  {key}: {_format_value(value)}")
    manager.shutdown()


# ---------------------------------------------------------------------------
# convert
# ---------------------------------------------------------------------------


@cli.command("convert")
@click.argument("source", type=click.Path(dir_okay=False))
@click.argument("target", type=click.Path(dir_okay=False))
def convert(source: str, target: str):
    """Write the merged chain as a single source, in TARGET's format."""
    formats = default_formats()
    chain = _load(source)
    try:
        adapter = formats.for_path(target)
    except ConfigurationError as e:
        _fail(e)

    text = adapter.serialize(chain.definitions.records(), chain.symbols.raw())
    Path(target).write_text(text, encoding="utf-8")
    click.echo(
        f"Wrote {len(chain.definitions)} components and {len(chain.symbols)} globals to {target}"
    )


def main():
    cli()


if __name__ == "__main__":
    main()

"""Command line tools for inspecting and pre-populating scenarios."""

from __future__ import annotations

import dataclasses
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click
import yaml

from .config import ScenarioConfig
from .errors import ScenarioError
from .scenario import ScenarioManager, describe
from .types import decode_address

logger = logging.getLogger(__name__)


class PlainDumper(yaml.SafeDumper):
    pass


def _str_representer(dumper: yaml.SafeDumper, data: str) -> yaml.ScalarNode:
    return dumper.represent_scalar("tag:yaml.org,2002:str", data, style=None)


PlainDumper.add_representer(str, _str_representer)


def dump_yaml(data: dict) -> str:
    return yaml.dump(data, Dumper=PlainDumper, sort_keys=False, width=4096)


def _manager(root: Optional[str]) -> ScenarioManager:
    return ScenarioManager(Path(root) if root else None)


@click.group()
@click.option("--verbose", is_flag=True, help="Enable verbose output")
def main(verbose: bool) -> None:
    """Inspect and populate seashell scenarios."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )


@main.command()
@click.argument("name")
@click.option("--root", default=None, help="Directory containing scenarios/ (default: cwd)")
def show(name: str, root: Optional[str]) -> None:
    """Print a scenario's accounts as YAML."""
    try:
        handle = _manager(root).open(name, ScenarioConfig())
    except ScenarioError as e:
        logger.error(str(e))
        sys.exit(1)
    click.echo(dump_yaml(describe(handle)), nl=False)


@main.command()
@click.argument("name")
@click.option("--root", default=None, help="Directory containing scenarios/ (default: cwd)")
def digest(name: str, root: Optional[str]) -> None:
    """Print the BLAKE3 digest of a scenario's accounts."""
    try:
        handle = _manager(root).open(name, ScenarioConfig())
    except ScenarioError as e:
        logger.error(str(e))
        sys.exit(1)
    click.echo(handle.digest())


@main.command()
@click.argument("name")
@click.argument("addresses", nargs=-1, required=True)
@click.option("--root", default=None, help="Directory containing scenarios/ (default: cwd)")
@click.option("--endpoint", default=None, help="RPC endpoint URL (default: $RPC_URL)")
def fetch(name: str, addresses: Tuple[str, ...], root: Optional[str], endpoint: Optional[str]) -> None:
    """Resolve ADDRESSES into scenario NAME, fetching and persisting any misses."""
    try:
        config = ScenarioConfig.from_env()
    except ScenarioError as e:
        logger.error(str(e))
        sys.exit(1)
    if endpoint:
        config = dataclasses.replace(config, endpoint=endpoint)
    if not config.can_fetch:
        logger.error("No endpoint configured; pass --endpoint or set RPC_URL")
        sys.exit(1)

    try:
        handle = _manager(root).open(name, config)
        for text in addresses:
            account = handle.account(decode_address(text))
            click.echo(f"{text} lamports={account.lamports} data_len={len(account.data)}")
    except ScenarioError as e:
        logger.error(str(e))
        sys.exit(1)
    logger.info(f"Scenario {name} now holds {len(handle.resolver.overrides())} accounts")


if __name__ == "__main__":
    main()

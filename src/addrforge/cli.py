import functools
import logging
from pathlib import Path

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler

from addrforge import __version__
from addrforge.config import ConfigError, scaffold_plan
from addrforge.generator import AddressGenerator
from addrforge.network import NetworkError
from addrforge.planner import TopologyPlanner

console = Console()


def handle_errors(fn):
    """Decorator to catch and display allocation and plan errors."""

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except NetworkError as e:
            console.print(f"[bold red]Error ({e.kind.value}):[/bold red] {e}")
            raise SystemExit(1)
        except ConfigError as e:
            console.print(f"[bold red]Error:[/bold red] {e}")
            raise SystemExit(1)

    return wrapper


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _run_plan(path: str, test_mode: bool):
    planner = TopologyPlanner()
    config = planner.load(path)
    if test_mode:
        config["options"] = {**(config.get("options") or {}), "test_mode": True}
    results = planner.build(config)
    return planner, config, results


@click.group()
@click.version_option(version=__version__, prog_name="addrforge")
@click.option("-v", "--verbose", is_flag=True, help="Log every allocation")
def cli(verbose):
    """Addrforge - Collision-free IPv4 addressing for generated topologies."""
    setup_logging(verbose)


@cli.command()
@click.argument("path")
@click.option("--test-mode", is_flag=True, help="Report collisions in the table instead of aborting")
@handle_errors
def plan(path, test_mode):
    """Allocate the networks and hosts described by a plan file."""
    planner, config, results = _run_plan(path, test_mode)
    planner.print_plan(results, title=f"{config['name']} - Allocated Networks")
    if any(r.error for r in results):
        raise SystemExit(1)


@cli.command()
@click.argument("path")
@click.argument("address")
@click.option("-m", "--mask", default=None, help="Check the network ADDRESS/MASK instead of a single address")
@handle_errors
def check(path, address, mask):
    """Check whether an address or network is taken once a plan has run."""
    planner, _, _ = _run_plan(path, test_mode=False)
    gen: AddressGenerator = planner.generator
    try:
        if mask is None:
            taken = gen.is_address_allocated(address)
            label = address
        else:
            taken = gen.is_network_allocated(address, mask)
            label = f"{address} mask {mask}"
    except ValueError as e:
        raise click.BadParameter(str(e))

    if taken:
        console.print(f"[bold yellow]{label}[/bold yellow] is allocated")
    else:
        console.print(f"[bold green]{label}[/bold green] is free")


@cli.command()
@click.argument("path")
@handle_errors
def init(path):
    """Scaffold a topology plan YAML file."""
    target = Path(path)
    if target.exists():
        console.print(f"[bold red]File already exists:[/bold red] {target}")
        raise SystemExit(1)

    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w") as f:
        yaml.dump(scaffold_plan(target.stem), f, default_flow_style=False, sort_keys=False)

    console.print(f"[bold green]Created plan:[/bold green] {target}")
    console.print(f"Edit the file, then run: [bold]addrforge plan {path}[/bold]")

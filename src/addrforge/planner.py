import ipaddress
import logging
from dataclasses import dataclass, field
from typing import Optional

from rich.console import Console
from rich.table import Table

from addrforge.config import (
    interpolate_variables,
    load_config,
    options_from_config,
    resolve_plan,
    validate_config,
)
from addrforge.generator import AddressGenerator
from addrforge.network import DEFAULT_BASE, to_prefixlen

console = Console()
logger = logging.getLogger(__name__)


@dataclass
class PlannedNetwork:
    """One network drawn while running a plan, with the hosts drawn in it."""

    name: str
    network: Optional[ipaddress.IPv4Address]
    prefixlen: int
    hosts: list[ipaddress.IPv4Address] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def cidr(self) -> str:
        if self.network is None:
            return "-"
        return f"{self.network}/{self.prefixlen}"


class TopologyPlanner:
    """Runs a topology plan through an AddressGenerator."""

    def __init__(self, generator: AddressGenerator | None = None):
        self.generator = generator

    def load(self, plan: str) -> dict:
        """Resolve, interpolate and validate a plan file."""
        path = resolve_plan(plan)
        config = interpolate_variables(load_config(path))
        validate_config(config)
        return config

    def build(self, config: dict) -> list[PlannedNetwork]:
        """Allocate every network and host described by ``config``."""
        if self.generator is None:
            self.generator = AddressGenerator.from_options(options_from_config(config))
        gen = self.generator

        for addr in config.get("reserved") or []:
            gen.add_allocated(addr)

        results = []
        for net in config["networks"]:
            results.extend(self._build_network(net))
        logger.info(
            "Plan '%s' allocated %d networks", config["name"], sum(1 for r in results if r.error is None)
        )
        return results

    def _build_network(self, net: dict) -> list[PlannedNetwork]:
        gen = self.generator
        name = net.get("name", "network")
        mask = net["mask"]
        prefixlen = to_prefixlen(mask)

        if "network" in net:
            if gen.init(net["network"], mask, net.get("base", DEFAULT_BASE)) is False:
                return [self._failed(name, prefixlen)]

        results = []
        for i in range(net.get("count", 1)):
            if i > 0 or net.get("advance", False):
                network = gen.next_network(mask)
            else:
                network = gen.get_network(mask)
            if network is None:
                results.append(self._failed(name, prefixlen))
                break

            planned = PlannedNetwork(name=name, network=network, prefixlen=prefixlen)
            for _ in range(net.get("hosts", 0)):
                address = gen.next_address(mask)
                if address is None:
                    planned.error = str(gen.last_error)
                    break
                planned.hosts.append(address)
            results.append(planned)
        return results

    def _failed(self, name: str, prefixlen: int) -> PlannedNetwork:
        return PlannedNetwork(
            name=name, network=None, prefixlen=prefixlen, error=str(self.generator.last_error)
        )

    def print_plan(self, results: list[PlannedNetwork], title: str = "Allocated Networks") -> None:
        """Print allocated networks and hosts as a table."""
        table = Table(title=title)
        table.add_column("Name", style="cyan")
        table.add_column("Network", style="green")
        table.add_column("Hosts")
        table.add_column("Status", style="bold")

        for planned in results:
            hosts = ", ".join(str(h) for h in planned.hosts) or "-"
            status = "[green]ok[/green]" if planned.error is None else f"[red]{planned.error}[/red]"
            table.add_row(planned.name, planned.cidr, hosts, status)

        console.print(table)

import os
import re
from dataclasses import dataclass
from pathlib import Path

import yaml

from addrforge.network import (
    ALL_ONES,
    DEFAULT_BASE,
    host_range,
    prefix_mask,
    to_address,
    to_prefixlen,
)


ENV_PREFIX = "ADDRFORGE_"
_TRUE = ("1", "true", "yes", "on")
_FLAGS = ("skip_overlapping", "test_mode")


class ConfigError(Exception):
    pass


@dataclass
class GeneratorOptions:
    """Knobs for an AddressGenerator, read from a plan file or the environment."""

    skip_overlapping: bool = True
    max_network_probes: int = 1 << 16
    test_mode: bool = False

    @classmethod
    def from_env(cls, environ=None) -> "GeneratorOptions":
        """Build options from ADDRFORGE_* environment variables."""
        environ = os.environ if environ is None else environ
        options = cls()
        if f"{ENV_PREFIX}SKIP_OVERLAPPING" in environ:
            options.skip_overlapping = environ[f"{ENV_PREFIX}SKIP_OVERLAPPING"].lower() in _TRUE
        if f"{ENV_PREFIX}TEST_MODE" in environ:
            options.test_mode = environ[f"{ENV_PREFIX}TEST_MODE"].lower() in _TRUE
        if f"{ENV_PREFIX}MAX_NETWORK_PROBES" in environ:
            raw = environ[f"{ENV_PREFIX}MAX_NETWORK_PROBES"]
            try:
                options.max_network_probes = int(raw)
            except ValueError:
                raise ConfigError(f"{ENV_PREFIX}MAX_NETWORK_PROBES must be an integer, got '{raw}'")
        return options


def resolve_plan(plan: str) -> Path:
    """Resolve a plan path to an existing YAML file."""
    path = Path(plan)
    if path.exists() and path.suffix in (".yml", ".yaml"):
        return path.resolve()

    for ext in (".yml", ".yaml"):
        candidate = path.with_suffix(ext)
        if candidate.exists():
            return candidate.resolve()

    raise ConfigError(f"Plan '{plan}' not found. Run 'addrforge init {plan}' to create one.")


def load_config(path: Path) -> dict:
    """Load and parse a topology plan YAML file."""
    with open(path) as f:
        try:
            config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(config, dict):
        raise ConfigError(f"Invalid plan file: {path}")
    return config


def validate_config(config: dict) -> None:
    """Validate required fields and value types in a plan."""
    if "name" not in config:
        raise ConfigError("Plan missing required field: 'name'")
    if "networks" not in config or not config["networks"]:
        raise ConfigError("Plan must define at least one network")

    reserved = config.get("reserved") or []
    if not isinstance(reserved, list):
        raise ConfigError("'reserved' must be a list of addresses")
    for addr in reserved:
        _check_address(addr, "reserved address")

    for i, net in enumerate(config["networks"]):
        if not isinstance(net, dict):
            raise ConfigError(f"Network {i} must be a mapping")
        label = net.get("name", i)
        if "mask" not in net:
            raise ConfigError(f"Network '{label}' missing required field: 'mask'")
        try:
            prefixlen = to_prefixlen(net["mask"])
        except ValueError as e:
            raise ConfigError(f"Network '{label}': {e}") from e
        for field in ("network", "base"):
            if field in net:
                _check_address(net[field], f"network '{label}' {field}")
        first, last = host_range(prefixlen)
        base = int(to_address(net.get("base", DEFAULT_BASE))) & (ALL_ONES ^ prefix_mask(prefixlen))
        if not first <= base <= last:
            raise ConfigError(
                f"Network '{label}': base {net.get('base', DEFAULT_BASE)} is a reserved host in a /{prefixlen} network"
            )
        if not isinstance(net.get("advance", False), bool):
            raise ConfigError(f"Network '{label}': 'advance' must be true or false")
        for field in ("hosts", "count"):
            value = net.get(field, 0)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ConfigError(f"Network '{label}': '{field}' must be a non-negative integer")


def _check_address(value, what: str) -> None:
    try:
        to_address(value)
    except ValueError as e:
        raise ConfigError(f"Invalid {what}: {e}") from e


def interpolate_variables(config: dict) -> dict:
    """Interpolate ${var} references using values from config['settings']."""
    lookup = {**(config.get("settings") or {})}

    def _replace(obj):
        if isinstance(obj, str):
            def _sub(m):
                key = m.group(1)
                if key in lookup:
                    return str(lookup[key])
                env_val = os.environ.get(key)
                if env_val is not None:
                    return env_val
                return m.group(0)  # leave unresolved
            return re.sub(r"\$\{(\w+)\}", _sub, obj)
        elif isinstance(obj, dict):
            return {k: _replace(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [_replace(item) for item in obj]
        return obj

    return _replace(config)


def options_from_config(config: dict) -> GeneratorOptions:
    """Merge plan ``options`` over the environment defaults."""
    options = GeneratorOptions.from_env()
    raw = config.get("options") or {}
    if not isinstance(raw, dict):
        raise ConfigError("'options' must be a mapping")
    for key, value in raw.items():
        if not hasattr(options, key):
            raise ConfigError(f"Unknown option: '{key}'")
        if key in _FLAGS and not isinstance(value, bool):
            raise ConfigError(f"'{key}' must be true or false, got '{value}'")
        setattr(options, key, value)
    probes = options.max_network_probes
    if not isinstance(probes, int) or isinstance(probes, bool) or probes < 1:
        raise ConfigError("'max_network_probes' must be a positive integer")
    return options


def scaffold_plan(name: str) -> dict:
    """Return a starter plan with one core network and a few access networks."""
    return {
        "name": name,
        "description": "Custom topology - edit this description",
        "settings": {
            "core_net": "10.1.1.0",
        },
        "options": {
            "skip_overlapping": True,
            "max_network_probes": 1 << 16,
        },
        "reserved": [],
        "networks": [
            {
                "name": "core",
                "network": "${core_net}",
                "mask": "/24",
                "base": "0.0.0.1",
                "hosts": 2,
            },
            {
                "name": "access",
                "network": "10.2.0.0",
                "mask": "/30",
                "hosts": 2,
                "count": 4,
            },
        ],
    }

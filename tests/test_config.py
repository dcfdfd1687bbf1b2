import pytest
import yaml

from addrforge.config import (
    ConfigError,
    GeneratorOptions,
    interpolate_variables,
    load_config,
    options_from_config,
    resolve_plan,
    scaffold_plan,
    validate_config,
)
from addrforge.generator import AddressGenerator, ErrorPolicy


def minimal_plan(**overrides):
    plan = {
        "name": "lab",
        "networks": [{"name": "core", "network": "10.1.1.0", "mask": "/24", "hosts": 2}],
    }
    plan.update(overrides)
    return plan


def test_resolve_plan(tmp_path):
    path = tmp_path / "campus.yml"
    path.write_text("name: campus\n")
    assert resolve_plan(str(path)) == path.resolve()
    assert resolve_plan(str(tmp_path / "campus")) == path.resolve()
    with pytest.raises(ConfigError):
        resolve_plan(str(tmp_path / "missing"))


def test_load_config_rejects_non_mapping(tmp_path):
    path = tmp_path / "bad.yml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError):
        load_config(path)


def test_load_config_rejects_invalid_yaml(tmp_path):
    path = tmp_path / "broken.yml"
    path.write_text("name: [unclosed\n")
    with pytest.raises(ConfigError):
        load_config(path)


def test_validate_config_accepts_minimal_plan():
    validate_config(minimal_plan())


@pytest.mark.parametrize(
    "plan",
    [
        {"networks": [{"mask": "/24"}]},
        {"name": "x"},
        {"name": "x", "networks": []},
        {"name": "x", "networks": [{"name": "a"}]},
        {"name": "x", "networks": [{"mask": "255.0.255.0"}]},
        {"name": "x", "networks": [{"mask": "/24", "network": "10.0.0.300"}]},
        {"name": "x", "networks": [{"mask": "/24", "hosts": -1}]},
        {"name": "x", "networks": [{"mask": "/24", "count": "two"}]},
        {"name": "x", "networks": ["10.0.0.0/24"]},
        {"name": "x", "reserved": ["nope"], "networks": [{"mask": "/24"}]},
    ],
)
def test_validate_config_errors(plan):
    with pytest.raises(ConfigError):
        validate_config(plan)


def test_interpolate_variables(monkeypatch):
    monkeypatch.setenv("ACCESS_NET", "10.9.0.0")
    config = {
        "settings": {"core_net": "10.1.1.0"},
        "networks": [
            {"network": "${core_net}"},
            {"network": "${ACCESS_NET}"},
            {"network": "${UNSET_VARIABLE_XYZ}"},
        ],
    }
    result = interpolate_variables(config)
    assert [n["network"] for n in result["networks"]] == [
        "10.1.1.0",
        "10.9.0.0",
        "${UNSET_VARIABLE_XYZ}",
    ]


def test_options_from_env(monkeypatch):
    monkeypatch.setenv("ADDRFORGE_SKIP_OVERLAPPING", "false")
    monkeypatch.setenv("ADDRFORGE_MAX_NETWORK_PROBES", "12")
    monkeypatch.setenv("ADDRFORGE_TEST_MODE", "yes")
    options = GeneratorOptions.from_env()
    assert options == GeneratorOptions(skip_overlapping=False, max_network_probes=12, test_mode=True)


def test_options_from_env_bad_integer():
    with pytest.raises(ConfigError):
        GeneratorOptions.from_env({"ADDRFORGE_MAX_NETWORK_PROBES": "lots"})


def test_options_from_config_overrides_env(monkeypatch):
    monkeypatch.setenv("ADDRFORGE_MAX_NETWORK_PROBES", "12")
    options = options_from_config(minimal_plan(options={"test_mode": True}))
    assert options.max_network_probes == 12
    assert options.test_mode is True


def test_options_from_config_errors():
    with pytest.raises(ConfigError):
        options_from_config(minimal_plan(options={"colour": "blue"}))
    with pytest.raises(ConfigError):
        options_from_config(minimal_plan(options={"max_network_probes": 0}))
    with pytest.raises(ConfigError):
        options_from_config(minimal_plan(options=["test_mode"]))


def test_generator_from_options():
    gen = AddressGenerator.from_options(
        GeneratorOptions(skip_overlapping=False, max_network_probes=5, test_mode=True)
    )
    assert gen.policy is ErrorPolicy.REPORT
    assert gen.skip_overlapping is False
    assert gen.max_network_probes == 5


def test_scaffold_plan_is_valid(tmp_path):
    path = tmp_path / "scaffold.yml"
    path.write_text(yaml.dump(scaffold_plan("scaffold"), sort_keys=False))
    config = interpolate_variables(load_config(path))
    validate_config(config)
    assert config["name"] == "scaffold"
    assert config["networks"][0]["network"] == "10.1.1.0"


@pytest.mark.parametrize(
    "net",
    [
        {"network": "10.0.0.0", "mask": "/24", "base": "0.0.0.0"},
        {"network": "10.0.0.0", "mask": "/24", "base": "10.0.0.255"},
        {"network": "10.0.0.0", "mask": "/30", "base": "0.0.0.3"},
        {"network": "10.0.0.0", "mask": "/24", "advance": "yes"},
    ],
)
def test_validate_config_rejects_reserved_base_and_bad_advance(net):
    with pytest.raises(ConfigError):
        validate_config({"name": "x", "networks": [net]})


def test_validate_config_accepts_point_to_point_base():
    validate_config({"name": "x", "networks": [{"network": "10.0.0.0", "mask": "/31", "base": "0.0.0.0"}]})
    validate_config({"name": "x", "networks": [{"network": "10.0.0.7", "mask": "/32"}]})


def test_validate_config_empty_reserved():
    validate_config(minimal_plan(reserved=None))
    with pytest.raises(ConfigError):
        validate_config(minimal_plan(reserved="10.0.0.1"))


def test_interpolate_variables_empty_settings():
    assert interpolate_variables({"settings": None, "name": "${X_UNSET_ADDRFORGE}"})["name"] == "${X_UNSET_ADDRFORGE}"


@pytest.mark.parametrize("key", ["skip_overlapping", "test_mode"])
@pytest.mark.parametrize("value", ["no", "false", 0, 1])
def test_options_from_config_requires_booleans(key, value):
    with pytest.raises(ConfigError):
        options_from_config(minimal_plan(options={key: value}))


def test_options_from_config_accepts_booleans():
    options = options_from_config(minimal_plan(options={"skip_overlapping": False, "test_mode": False}))
    assert options.skip_overlapping is False
    assert options.test_mode is False
    with pytest.raises(ConfigError):
        options_from_config(minimal_plan(options={"max_network_probes": True}))

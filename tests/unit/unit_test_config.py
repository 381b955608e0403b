import pytest

from dashtransporter.config import (
    Environment,
    EnvironmentRegistry,
    load_environments_from_env,
    load_environments_from_yaml,
)


def test_load_environments_from_env_reads_configured_tiers() -> None:
    env = {
        "GRAFANA_DEV_URL": " http://grafana-dev:3000 ",
        "GRAFANA_DEV_USER": "admin",
        "GRAFANA_DEV_PASS": "devpass",
        "GRAFANA_PRD_URL": "https://grafana.example.com",
        "GRAFANA_PRD_USER": "svc",
        "GRAFANA_PRD_PASSWORD": "legacy",
    }

    environments = load_environments_from_env(env)

    assert environments == [
        Environment(id="dev", name="Grafana DEV", url="http://grafana-dev:3000", user="admin", password="devpass"),
        Environment(id="prd", name="Grafana PRD", url="https://grafana.example.com", user="svc", password="legacy"),
    ]


def test_pass_variable_wins_over_password() -> None:
    env = {"GRAFANA_HML_URL": "http://hml", "GRAFANA_HML_PASS": "new", "GRAFANA_HML_PASSWORD": "old"}

    (environment,) = load_environments_from_env(env)

    assert environment.password == "new"


def test_registry_lookup_and_public_listing() -> None:
    registry = EnvironmentRegistry.from_env({"GRAFANA_DEV_URL": "http://dev", "GRAFANA_DEV_PASS": "secret"})

    assert registry.get_environment("dev").url == "http://dev"
    assert registry.get_environment("DEV") is None
    assert registry.get_environment("prd") is None
    assert registry.list_public() == [{"id": "dev", "name": "Grafana DEV", "url": "http://dev"}]


def test_load_environments_from_yaml(tmp_path) -> None:
    config_file = tmp_path / "environments.yaml"
    config_file.write_text(
        "environments:\n"
        "  - id: DEV\n"
        "    url: http://dev\n"
        "    user: admin\n"
        "    password: secret\n"
        "  - name: no id\n"
        "    url: http://nowhere\n"
    )

    registry = EnvironmentRegistry.from_yaml(str(config_file))

    assert [e.id for e in registry.environments] == ["dev"]
    assert registry.get_environment("dev").name == "Grafana DEV"
    assert load_environments_from_yaml(str(config_file))[0].password == "secret"


def test_load_environments_from_yaml_with_empty_environments_key(tmp_path) -> None:
    config_file = tmp_path / "environments.yaml"
    config_file.write_text("environments:\n")

    assert load_environments_from_yaml(str(config_file)) == []


def test_load_environments_from_yaml_skips_non_mapping_entries(tmp_path) -> None:
    config_file = tmp_path / "environments.yaml"
    config_file.write_text(
        "environments:\n"
        "  - just-a-string\n"
        "  - 42\n"
        "  - id: prd\n"
        "    url: http://prd\n"
    )

    environments = load_environments_from_yaml(str(config_file))

    assert [e.id for e in environments] == ["prd"]
    assert environments[0].url == "http://prd"


@pytest.mark.parametrize("missing", ["url", "user", "password"])
def test_validate_requires_credentials(missing) -> None:
    values = {"url": "http://dev", "user": "admin", "password": "secret"}
    values[missing] = ""
    environment = Environment(id="dev", name="Grafana DEV", **values)

    with pytest.raises(ValueError, match=f"missing {missing.upper()}"):
        environment.validate()

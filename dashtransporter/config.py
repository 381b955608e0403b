import os
import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

import yaml


logger = logging.getLogger("dashtransporter.config")

# Tier suffix -> display name, in the order environments are listed
ENVIRONMENT_TIERS = (
    ("DEV", "Grafana DEV"),
    ("HML", "Grafana HML"),
    ("PRD", "Grafana PRD"),
)


@dataclass(frozen=True)
class Environment:
    """One reachable Grafana deployment and the credentials used against it."""

    id: str
    name: str
    url: str
    user: str = ""
    password: str = ""

    def public(self) -> Dict[str, str]:
        """Returns the environment without its credentials."""
        return {"id": self.id, "name": self.name, "url": self.url}

    def validate(self) -> None:
        """
        Checks the environment carries everything needed to open a connection.

        Raises:
            ValueError: If the URL, user or password is missing.
        """
        if not self.url:
            raise ValueError(f"environment {self.id} missing URL")
        if not self.user:
            raise ValueError(f"environment {self.id} missing USER")
        if not self.password:
            raise ValueError(f"environment {self.id} missing PASSWORD")


def _environment_from_vars(suffix: str, display_name: str, env: Mapping[str, str]) -> Optional[Environment]:
    url = env.get(f"GRAFANA_{suffix}_URL", "").strip()
    if not url:
        return None

    user = env.get(f"GRAFANA_{suffix}_USER", "").strip()
    # _PASS is preferred, _PASSWORD kept for older deployments
    password = env.get(f"GRAFANA_{suffix}_PASS", "") or env.get(f"GRAFANA_{suffix}_PASSWORD", "")

    return Environment(id=suffix.lower(), name=display_name, url=url, user=user, password=password)


def load_environments_from_env(env: Optional[Mapping[str, str]] = None) -> List[Environment]:
    """
    Builds the environment list from GRAFANA_<DEV|HML|PRD>_URL/_USER/_PASS variables.

    Parameters:
        env (Mapping, optional): Variables to read. Defaults to os.environ.

    Returns:
        list: Environments whose URL variable is set, in DEV, HML, PRD order.
    """
    env = os.environ if env is None else env
    environments = []
    for suffix, display_name in ENVIRONMENT_TIERS:
        environment = _environment_from_vars(suffix, display_name, env)
        if environment is not None:
            environments.append(environment)

    if not environments:
        logger.warning("No environment configured via GRAFANA_*_URL variables.")
    for environment in environments:
        logger.info(f"{environment.id.upper()} - URL: {environment.url}, User: {environment.user}")

    return environments


def load_environments_from_yaml(config_file: str) -> List[Environment]:
    """
    Loads environments from a YAML file of the form:

        environments:
          - id: dev
            name: Grafana DEV
            url: https://grafana-dev.example.com
            user: admin
            password: secret
    """
    with open(config_file, "r") as stream:
        config = yaml.load(stream, Loader=yaml.FullLoader) or {}

    environments = []
    for entry in config.get("environments") or []:
        if not isinstance(entry, dict):
            logger.warning(f"Skipping malformed environment entry in {config_file}: {entry!r}")
            continue
        env_id = str(entry.get("id", "")).strip().lower()
        if not env_id:
            logger.warning(f"Skipping environment without id in {config_file}: {entry.get('name')}")
            continue
        environments.append(Environment(
            id=env_id,
            name=entry.get("name") or f"Grafana {env_id.upper()}",
            url=str(entry.get("url", "")).strip(),
            user=str(entry.get("user", "")).strip(),
            password=str(entry.get("password", "")),
        ))
    logger.info(f"Loaded {len(environments)} environments from {config_file}.")
    return environments


class EnvironmentRegistry:
    """Read-only catalogue of the configured environments, keyed by id."""

    def __init__(self, environments: List[Environment]):
        self._environments = list(environments)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "EnvironmentRegistry":
        return cls(load_environments_from_env(env))

    @classmethod
    def from_yaml(cls, config_file: str) -> "EnvironmentRegistry":
        return cls(load_environments_from_yaml(config_file))

    @property
    def environments(self) -> List[Environment]:
        return list(self._environments)

    def get_environment(self, env_id: str) -> Optional[Environment]:
        for environment in self._environments:
            if environment.id == env_id:
                return environment
        return None

    def list_public(self) -> List[Dict[str, str]]:
        return [environment.public() for environment in self._environments]

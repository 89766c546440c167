"""YAML configuration for the SNOW ticket tools.

The configuration file holds the ServiceNow connection settings and the
Nagios URL templates used when linking monitoring alerts to incidents::

    servicenow:
      url: https://fermi.service-now.com/
      username: svc-snow
      password: secret
    nagios:
      url: https://monitor.example.org
      site: prod
      style: check_mk
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from fnal_snow.servicenow_api import ServiceNowCredentials

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path("/etc/snow/config.yaml")
CONFIG_ENV_VAR = "SNOW_CONFIG"


class ConfigError(RuntimeError):
    """Raised when the configuration file is missing or incomplete."""


def default_config_path() -> Path:
    """Return the configuration path, honouring the SNOW_CONFIG override."""
    override = os.getenv(CONFIG_ENV_VAR)
    return Path(override) if override else DEFAULT_CONFIG_FILE


@dataclass(slots=True)
class SnowConfig:
    """Loaded configuration data and the file it came from."""

    config: dict[str, Any] = field(default_factory=dict)
    file: Optional[Path] = None

    @classmethod
    def load_yaml(cls, path: Union[str, Path, None] = None) -> "SnowConfig":
        """Load a configuration object from a YAML file.

        Raises:
            ConfigError: If the file cannot be read or does not hold a mapping.
        """
        file = Path(path) if path else default_config_path()
        LOGGER.debug("Loading configuration from %s", file)
        try:
            with open(file, encoding="utf-8") as handle:
                data = yaml.safe_load(handle)
        except OSError as exc:
            raise ConfigError(f"could not open {file}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigError(f"could not parse {file}: {exc}") from exc
        if not data:
            raise ConfigError(f"could not open {file}: empty configuration")
        if not isinstance(data, dict):
            raise ConfigError(f"could not open {file}: expected a mapping at the top level")
        return cls(config=data, file=file)

    def section(self, name: str) -> dict[str, Any]:
        value = self.config.get(name) or {}
        if not isinstance(value, dict):
            raise ConfigError(f"configuration section '{name}' must be a mapping")
        return value

    def credentials(self) -> ServiceNowCredentials:
        """Build ServiceNow credentials from the 'servicenow' section."""
        conf = self.section("servicenow")
        missing = [key for key in ("url", "username", "password") if not conf.get(key)]
        if missing:
            raise ConfigError(f"servicenow configuration is missing: {', '.join(missing)}")
        return ServiceNowCredentials(
            url=str(conf["url"]).rstrip("/"),
            username=str(conf["username"]),
            password=str(conf["password"]),
            verify_ssl=str(conf.get("verify_ssl", "true")).lower() != "false",
            timeout=int(conf.get("timeout", 30)),
        )

    def nagios_url(self, host: str, svc: Optional[str] = None) -> str:
        """Return a URL pointing at a host (or host/service pair) in Nagios."""
        conf = self.section("nagios")
        base_url = str(conf.get("url", "")).rstrip("/")
        site = conf.get("site", "")
        if str(conf.get("style", "")).lower() == "check_mk":
            if svc:
                return _nagios_url_cmk_svc(base_url, site, host, svc)
            return _nagios_url_cmk_host(base_url, site, host)
        if svc:
            return _nagios_url_extinfo_svc(base_url, host, svc)
        return _nagios_url_extinfo_host(base_url, host)


def _nagios_url_extinfo_host(base_url: str, host: str) -> str:
    return "/".join([base_url, "cgi-bin", f"extinfo.cgi?type=1&host={host}"])


def _nagios_url_extinfo_svc(base_url: str, host: str, svc: str) -> str:
    return "/".join([base_url, "cgi-bin", f"extinfo.cgi?type=2&host={host}&service={svc}"])


def _nagios_url_cmk_host(base_url: str, site: str, host: str) -> str:
    return "/".join(
        [base_url, site, "check_mk", f"index.py?start_url=view.py?view_name=hoststatus&site=&host={host}"]
    )


def _nagios_url_cmk_svc(base_url: str, site: str, host: str, svc: str) -> str:
    return "/".join(
        [base_url, site, "check_mk", f"index.py?start_url=view.py?view_name=service&host={host}&service={svc}"]
    )

"""Connection defaults read from configuration files and the environment.

Sources, highest precedence first:

1. keyword arguments
2. environment variables prefixed ``JAMF_``, e.g. ``JAMF_API_SERVER_NAME``
3. the user file, ``~/.jamfkit.conf``
4. the global file, ``/etc/jamfkit.conf``

The files hold ``key: value`` lines.
Blank lines and lines starting with ``#`` are ignored, as are unknown keys.
"""
import logging
import os
from pathlib import Path
from typing import Any, ClassVar, Dict, Optional, Tuple

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

__all__ = ["Configuration", "read_conf_file", "GLOBAL_CONF", "USER_CONF"]

logger = logging.getLogger(__name__)

GLOBAL_CONF = Path("/etc/jamfkit.conf")
USER_CONF = Path("~/.jamfkit.conf")

_CONNECT_PARAMS = {
    "api_server_name": "host",
    "api_server_port": "port",
    "api_username": "user",
    "api_timeout": "timeout",
    "api_timeout_open": "open_timeout",
    "api_verify_cert": "verify_cert",
    "api_ssl_version": "ssl_version",
}


def read_conf_file(path):
    """Read the ``key: value`` pairs of a configuration file.

    Parameters
    ----------
    path: str or ~pathlib.Path
        the file. ``~`` is expanded.

    Returns
    -------
    ~typing.Dict[str, str]
        the pairs; empty if the file does not exist
    """
    path = Path(os.path.expanduser(str(path)))
    if not path.is_file():
        return {}
    data = {}
    with path.open("r") as rfile:
        for line in rfile:
            line = line.strip()
            if not line or line.startswith("#") or ":" not in line:
                continue
            key, value = line.split(":", 1)
            data[key.strip()] = value.strip()
    logger.debug("read configuration from %s", path)
    return data


class _ConfFileSource(PydanticBaseSettingsSource):
    """Settings source reading the configuration files,
    later files overriding earlier ones"""

    def __init__(self, settings_cls, paths):
        super().__init__(settings_cls)
        self.paths = paths

    def get_field_value(self, field, field_name):
        return self().get(field_name), field_name, False

    def __call__(self):
        data = {}
        for path in self.paths:
            data.update(read_conf_file(path))
        return {
            k: v
            for k, v in data.items()
            if k in self.settings_cls.model_fields and v != ""
        }


class Configuration(BaseSettings):
    """Defaults for :meth:`~jamfkit.connection.Connection.connect`"""

    CONF_FILES: ClassVar[Tuple[Path, ...]] = (GLOBAL_CONF, USER_CONF)

    api_server_name: Optional[str] = Field(
        default=None, description="Hostname of the server"
    )
    api_server_port: Optional[int] = Field(
        default=None, description="TCP port of the server"
    )
    api_username: Optional[str] = Field(
        default=None, description="User to connect as"
    )
    api_timeout: Optional[int] = Field(
        default=None, description="Seconds to wait for a response"
    )
    api_timeout_open: Optional[int] = Field(
        default=None, description="Seconds to wait for a connection"
    )
    api_verify_cert: Optional[bool] = Field(
        default=None, description="Verify the server's TLS certificate"
    )
    api_ssl_version: Optional[str] = Field(
        default=None, description="Minimum TLS version"
    )

    model_config = SettingsConfigDict(
        env_prefix="JAMF_", case_sensitive=False, extra="ignore"
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            _ConfFileSource(settings_cls, cls.CONF_FILES),
        )

    @classmethod
    def load(cls, *paths, **overrides):
        """Load the configuration, optionally from other files.

        Parameters
        ----------
        *paths: str or ~pathlib.Path
            files to read instead of :attr:`CONF_FILES`,
            later ones taking precedence
        **overrides
            explicit values

        Returns
        -------
        Configuration
        """
        klass = cls
        if paths:
            klass = type(
                cls.__name__,
                (cls,),
                {"CONF_FILES": tuple(paths), "__module__": cls.__module__},
            )
        return klass(**overrides)

    def save(self, path=USER_CONF):
        """Write the values which are set to a configuration file"""
        path = Path(os.path.expanduser(str(path)))
        lines = [
            "{}: {}".format(
                name, str(value).lower() if isinstance(value, bool) else value
            )
            for name, value in self.model_dump().items()
            if value is not None
        ]
        path.write_text("\n".join(lines) + "\n")
        logger.debug("saved configuration to %s", path)

    def as_connect_params(self) -> Dict[str, Any]:
        """The set values, keyed by their ``connect`` parameter names"""
        return {
            _CONNECT_PARAMS[name]: value
            for name, value in self.model_dump().items()
            if value is not None
        }

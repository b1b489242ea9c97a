"""Configuration models and loading."""

import base64
import binascii
import ipaddress
import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.allowlist import Allowlist, AllowlistRule
from core.exceptions import ConfigurationError

KEY_SIZE = 32


def decode_key(value: str) -> bytes:
    """Decode a WireGuard key given as hex or standard base64."""
    value = value.strip()
    try:
        if len(value) == KEY_SIZE * 2:
            raw = bytes.fromhex(value)
        else:
            raw = base64.b64decode(value, validate=True)
    except (ValueError, binascii.Error) as e:
        raise ValueError(f"key is neither hex nor base64: {e}") from e
    if len(raw) != KEY_SIZE:
        raise ValueError(f"key must be {KEY_SIZE} bytes, got {len(raw)}")
    return raw


class WireguardPeer(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    public_key: str = Field(alias="publicKey")
    allowed_ips: str = Field(alias="allowedIps")
    endpoint: str | None = None
    persistent_keepalive_interval: int = Field(default=0, ge=0, alias="persistentKeepaliveInterval")

    @field_validator("public_key")
    @classmethod
    def _check_key(cls, value: str) -> str:
        decode_key(value)
        return value

    @field_validator("allowed_ips")
    @classmethod
    def _check_allowed_ips(cls, value: str) -> str:
        for cidr in value.split(","):
            ipaddress.ip_network(cidr.strip(), strict=False)
        return value

    @field_validator("endpoint")
    @classmethod
    def _check_endpoint(cls, value: str | None) -> str | None:
        if value is None:
            return value
        host, sep, port = value.rpartition(":")
        if not sep or not host or not port.isdigit() or not 0 < int(port) < 65536:
            raise ValueError(f"endpoint must be host:port, got {value!r}")
        return value


class WireguardBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    local_address: str = Field(alias="localAddress")
    private_key: str = Field(alias="privateKey")
    listen_port: int = Field(default=0, ge=0, le=65535, alias="listenPort")
    peers: list[WireguardPeer] = Field(min_length=1)

    @field_validator("local_address")
    @classmethod
    def _check_address(cls, value: str) -> str:
        ipaddress.ip_address(value)
        return value

    @field_validator("private_key")
    @classmethod
    def _check_key(cls, value: str) -> str:
        decode_key(value)
        return value


class AllowlistItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str
    methods: list[str] = Field(min_length=1, alias="allowedMethods")
    set_request_headers: dict[str, str] = Field(default_factory=dict, alias="setRequestHeaders")
    remove_response_headers: list[str] = Field(default_factory=list, alias="removeResponseHeaders")

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        parts = urlsplit(value)
        if parts.scheme not in ("http", "https") or not parts.hostname:
            raise ValueError(f"allowlist url must be an absolute http(s) url, got {value!r}")
        return value

    @field_validator("methods")
    @classmethod
    def _check_methods(cls, value: list[str]) -> list[str]:
        for method in value:
            if not method or method != method.upper() or not method.isalpha():
                raise ValueError(f"invalid HTTP method {method!r}")
        return value

    def to_rule(self) -> AllowlistRule:
        return AllowlistRule(
            url=self.url,
            methods=frozenset(self.methods),
            set_request_headers=self.set_request_headers,
            remove_response_headers=tuple(self.remove_response_headers),
        )


class LoggingSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    level: str = "INFO"
    skip_paths: list[str] = Field(default_factory=lambda: ["/healthcheck"], alias="skipPaths")
    log_root: Path = Field(default_factory=lambda: Path.cwd() / "logs", alias="logRoot")


class UpstreamSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    timeout: float = Field(default=30.0, gt=0)
    connect_timeout: float = Field(default=10.0, gt=0, alias="connectTimeout")
    max_connections: int = Field(default=100, gt=0, alias="maxConnections")
    max_keepalive_connections: int = Field(default=20, ge=0, alias="maxKeepaliveConnections")


class InboundProxyConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    wireguard: WireguardBase
    allowlist: list[AllowlistItem] = Field(default_factory=list)
    proxy_listen_port: int = Field(default=80, gt=0, le=65535, alias="proxyListenPort")
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    upstream: UpstreamSettings = Field(default_factory=UpstreamSettings)


class Config(BaseModel):
    inbound: InboundProxyConfig

    def build_allowlist(self) -> Allowlist:
        """Freeze the configured allowlist items into a lookup table."""
        return Allowlist(item.to_rule() for item in self.inbound.allowlist)


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into a copy of ``base``; nested dicts merge, everything else replaces."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _read_file(path: Path) -> dict[str, Any]:
    text = path.read_text()
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path}: top level must be a mapping")
    return data


def load_config(paths: Iterable[str | Path]) -> Config:
    """Load, merge and validate configuration files in order.

    Raises ConfigurationError on any failure; the broker never falls back
    to a default configuration.
    """
    paths = [Path(p) for p in paths]
    if not paths:
        raise ConfigurationError("no configuration files given")

    data: dict[str, Any] = {}
    for path in paths:
        try:
            data = deep_merge(data, _read_file(path))
        except OSError as e:
            raise ConfigurationError(f"cannot read {path}: {e}") from e
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigurationError(f"cannot parse {path}: {e}") from e

    try:
        config = Config.model_validate(data)
        # Duplicate rule URLs only show up once the allowlist is built
        config.build_allowlist()
    except ValidationError as e:
        raise ConfigurationError(f"invalid inbound config: {e}") from e
    return config

"""Connection settings for a SignalR hub: address, scheme, port and authentication."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field


class Authentication:
    """How requests to the hub are authenticated."""

    def header(self) -> str | None:
        """The Authorization header value, or None when none is sent."""
        return None


@dataclass(frozen=True)
class NoAuthentication(Authentication):
    """No Authorization header."""

    def header(self) -> str | None:
        return None


@dataclass(frozen=True)
class BasicAuthentication(Authentication):
    """HTTP basic authentication; a missing password sends an empty one."""

    user: str
    password: str | None = None

    def header(self) -> str | None:
        credentials = f"{self.user}:{self.password or ''}" if self.password is not None \
            else f"{self.user}:"
        encoded = base64.b64encode(credentials.encode("utf-8")).decode("ascii")
        return f"Basic {encoded}"


@dataclass(frozen=True)
class BearerAuthentication(Authentication):
    """Bearer token authentication."""

    token: str

    def header(self) -> str | None:
        return f"Bearer {self.token}"


@dataclass
class ConnectionConfiguration:
    """Where and how to connect to a hub; secure (https/wss) by default."""

    domain: str
    hub: str
    port: int | None = None
    is_secure: bool = True
    authentication: Authentication = field(default_factory=NoAuthentication)

    def with_port(self, port: int) -> ConnectionConfiguration:
        self.port = port
        return self

    def with_hub(self, hub: str) -> ConnectionConfiguration:
        self.hub = hub
        return self

    def secure(self) -> ConnectionConfiguration:
        self.is_secure = True
        return self

    def unsecure(self) -> ConnectionConfiguration:
        self.is_secure = False
        return self

    def authenticate_basic(self, user: str, password: str | None = None) -> ConnectionConfiguration:
        self.authentication = BasicAuthentication(user, password)
        return self

    def authenticate_bearer(self, token: str) -> ConnectionConfiguration:
        self.authentication = BearerAuthentication(token)
        return self

    def _host(self) -> str:
        return self.domain if self.port is None else f"{self.domain}:{self.port}"

    def web_url(self) -> str:
        scheme = "https" if self.is_secure else "http"
        return f"{scheme}://{self._host()}/{self.hub}"

    def socket_url(self) -> str:
        scheme = "wss" if self.is_secure else "ws"
        return f"{scheme}://{self._host()}/{self.hub}"
from enum import Enum
from pathlib import Path

import argclass


class ServerMode(str, Enum):
    STDIO = "stdio"
    HTTP = "http"


class HTTPGroup(argclass.Group):
    listen: str = argclass.Argument(default="127.0.0.1")
    port: int = argclass.Argument(default=9460)


class Cache(argclass.Group):
    path: Path = Path("~") / ".cache" / "compute_ops" / "cache.db"
    prune_days: int = argclass.Argument(
        default=30,
        help="Delete cached operations older than this many days",
    )


class Parser(argclass.Parser):
    url: str = argclass.Argument(default="https://compute.googleapis.com/compute/v1", help="Compute API base URL")
    token: str = argclass.Argument(secret=True, help="OAuth2 access token sent as a bearer token", required=True)
    project: str = argclass.Argument(help="Project the operations belong to", required=True)
    poll_interval: float = argclass.Argument(default=0.5, help="Seconds between two operation status checks")
    timeout: float = argclass.Argument(default=30.0, help="HTTP request timeout in seconds")
    mode: ServerMode = argclass.EnumArgument(
        ServerMode, default=ServerMode.STDIO, lowercase=True, help="Server transport mode"
    )

    log_level: int = argclass.LogLevel
    http: HTTPGroup = HTTPGroup()
    cache: Cache = Cache()

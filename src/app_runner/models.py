from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import Annotated

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

PortNumber = Annotated[int, Field(ge=1, le=65535)]


class MonitorMethod(str, Enum):
    NONE = "none"
    PORT = "port"
    URL = "url"


class MonitorConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    method: MonitorMethod = Field(MonitorMethod.NONE, description="How instance health is checked")
    port: int = Field(0, ge=0, le=65535, description="Port probed by the health check, exported as PORT")
    uri: str | None = Field(None, description="Path probed by the url monitor")
    timeout: timedelta = Field(timedelta(0), description="Per-probe timeout, omitted when zero")

    @model_validator(mode="after")
    def check_target(self) -> "MonitorConfig":
        if self.method in (MonitorMethod.PORT, MonitorMethod.URL) and self.port == 0:
            raise ValueError(f"{self.method.value} monitor requires a port")
        if self.method == MonitorMethod.URL and not self.uri:
            raise ValueError("url monitor requires a uri")
        return self


class RouteOverride(BaseModel):
    model_config = ConfigDict(frozen=True)

    hostname_prefix: str = Field(..., min_length=1)
    port: PortNumber


class AppRoute(BaseModel):
    hostnames: list[str] = Field(default_factory=list)
    port: int


class AppSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Unique identifier for the app, used as process guid")
    start_command: str = Field(..., description="Executable run inside the container")
    docker_image_path: str = Field(..., description="Image reference, e.g. repo/image:tag")
    app_args: list[str] = Field(default_factory=list)
    environment_variables: dict[str, str] = Field(default_factory=dict)
    privileged: bool = False
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)
    instances: int = Field(1, ge=0)
    cpu_weight: int = Field(100, ge=0, le=100)
    memory_mb: int = Field(128, ge=0)
    disk_mb: int = Field(1024, ge=0)
    exposed_ports: list[PortNumber] = Field(default_factory=list)
    working_dir: str = "/"
    route_overrides: list[RouteOverride] = Field(default_factory=list)
    no_routes: bool = False
    timeout: timedelta = Field(timedelta(0), description="Time allowed for the first healthy report")


def load_app_spec(path: Path) -> AppSpec:
    """Loads and validates an app manifest from a YAML file."""
    with open(path) as f:
        raw_config = yaml.safe_load(f)

    return AppSpec.model_validate(raw_config)

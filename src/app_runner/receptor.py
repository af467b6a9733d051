"""
Receptor wire models and HTTP client.

The models mirror the scheduler's JSON encoding for desired LRPs. Unknown
fields are kept so that a raw request can be forwarded without loss.
"""

from datetime import timedelta
from typing import Any, Protocol
from urllib.parse import quote

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import RemoteError
from .settings import AppSettings


class EnvironmentVariable(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    value: str


class DownloadAction(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    from_: str = Field(..., alias="from")
    to: str
    cache_key: str | None = None
    log_source: str | None = None


class RunAction(BaseModel):
    model_config = ConfigDict(extra="allow")

    path: str
    args: list[str] = Field(default_factory=list)
    dir: str | None = None
    env: list[EnvironmentVariable] = Field(default_factory=list)
    privileged: bool = False
    log_source: str | None = None


class Action(BaseModel):
    """Envelope keyed by action type, e.g. ``{"run": {...}}``."""

    model_config = ConfigDict(extra="allow")

    download: DownloadAction | None = None
    run: RunAction | None = None


class DesiredLRPCreateRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    process_guid: str = Field(..., min_length=1)
    domain: str = ""
    rootfs: str = ""
    instances: int = 0
    env: list[EnvironmentVariable] = Field(default_factory=list)
    setup: Action | None = None
    action: Action | None = None
    monitor: Action | None = None
    start_timeout: int = 0
    disk_mb: int = 0
    memory_mb: int = 0
    cpu_weight: int = 0
    privileged: bool = False
    ports: list[int] = Field(default_factory=list)
    routes: dict[str, Any] | None = None
    log_guid: str | None = None
    log_source: str | None = None
    metrics_guid: str | None = None
    annotation: str | None = None


class DesiredLRPUpdateRequest(BaseModel):
    """Sparse update: only the fields that are set are sent."""

    instances: int | None = None
    routes: dict[str, Any] | None = None
    annotation: str | None = None


class DesiredLRPResponse(DesiredLRPCreateRequest):
    pass


def to_json(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


def _lrp_path(process_guid: str) -> str:
    return f"/v1/desired_lrps/{quote(process_guid, safe='')}"


class SchedulerClient(Protocol):
    def desired_lrps(self) -> list[DesiredLRPResponse]: ...

    def get_desired_lrp(self, process_guid: str) -> DesiredLRPResponse | None: ...

    def upsert_domain(self, domain: str, ttl: timedelta = timedelta(0)) -> None: ...

    def create_desired_lrp(self, request: DesiredLRPCreateRequest) -> None: ...

    def update_desired_lrp(self, process_guid: str, update: DesiredLRPUpdateRequest) -> None: ...

    def delete_desired_lrp(self, process_guid: str) -> None: ...


class ReceptorClient:
    """Talks to the Receptor API. Transport and HTTP failures become RemoteError."""

    def __init__(
        self,
        base_url: str,
        username: str | None = None,
        password: str | None = None,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        if username:
            self.session.auth = (username, password or "")

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "ReceptorClient":
        return cls(
            settings.RECEPTOR_URL,
            username=settings.RECEPTOR_USERNAME,
            password=settings.RECEPTOR_PASSWORD,
            timeout=settings.REQUEST_TIMEOUT,
        )

    def _send(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            return self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise RemoteError(f"{method} {url} failed: {e}") from e

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        response = self._send(method, path, **kwargs)
        if not response.ok:
            raise self._error_from(response)
        return response

    @staticmethod
    def _error_from(response: requests.Response) -> RemoteError:
        error_type = None
        message = response.text or response.reason
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict):
            error_type = body.get("name")
            message = body.get("message") or message

        return RemoteError(
            f"Receptor returned {response.status_code}: {message}",
            status_code=response.status_code,
            error_type=error_type,
        )

    @staticmethod
    def _decode(response: requests.Response, decoder):
        try:
            return decoder(response.json())
        except (ValueError, ValidationError) as e:
            raise RemoteError(
                f"Receptor returned an unreadable body: {e}",
                status_code=response.status_code,
            ) from e

    def desired_lrps(self) -> list[DesiredLRPResponse]:
        response = self._request("GET", "/v1/desired_lrps")
        return self._decode(
            response, lambda body: [DesiredLRPResponse.model_validate(item) for item in body or []]
        )

    def get_desired_lrp(self, process_guid: str) -> DesiredLRPResponse | None:
        response = self._send("GET", _lrp_path(process_guid))
        if response.status_code == 404:
            return None
        if not response.ok:
            raise self._error_from(response)
        return self._decode(response, DesiredLRPResponse.model_validate)

    def upsert_domain(self, domain: str, ttl: timedelta = timedelta(0)) -> None:
        headers = {}
        if ttl:
            headers["Cache-Control"] = f"max-age={int(ttl.total_seconds())}"
        self._request("PUT", f"/v1/domains/{quote(domain, safe='')}", headers=headers)

    def create_desired_lrp(self, request: DesiredLRPCreateRequest) -> None:
        self._request("POST", "/v1/desired_lrps", json=to_json(request))

    def update_desired_lrp(self, process_guid: str, update: DesiredLRPUpdateRequest) -> None:
        self._request("PUT", _lrp_path(process_guid), json=to_json(update))

    def delete_desired_lrp(self, process_guid: str) -> None:
        self._request("DELETE", _lrp_path(process_guid))

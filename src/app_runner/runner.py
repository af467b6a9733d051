from collections.abc import Mapping, Sequence
from datetime import timedelta

from pydantic import ValidationError
from rich.console import Console

from .errors import (
    RESERVED_APP_ID,
    AlreadyExistsError,
    AppRunnerError,
    DecodeError,
    NotStartedError,
    ReservedNameError,
)
from .image import format_for_receptor
from .models import AppSpec, MonitorConfig, MonitorMethod, RouteOverride
from .receptor import (
    Action,
    DesiredLRPCreateRequest,
    DesiredLRPUpdateRequest,
    DownloadAction,
    EnvironmentVariable,
    ReceptorClient,
    RunAction,
    SchedulerClient,
)
from .routes import compute_routes, routes_from_overrides, routing_info
from .settings import AppSettings, get_settings

console = Console()

HEALTHCHECK_PATH = "/tmp/healthcheck"


def format_duration(value: timedelta) -> str:
    """Renders a duration the way the health check flag parser reads it: 5s, 1m30s, 250ms."""
    total_us = (value.days * 86400 + value.seconds) * 1_000_000 + value.microseconds
    if total_us == 0:
        return "0s"

    sign = "-" if total_us < 0 else ""
    total_us = abs(total_us)

    if total_us < 1000:
        return f"{sign}{total_us}µs"
    if total_us < 1_000_000:
        ms, frac = divmod(total_us, 1000)
        return f"{sign}{ms}{_fraction(frac, 3)}ms"

    hours, rest = divmod(total_us, 3600 * 1_000_000)
    minutes, rest = divmod(rest, 60 * 1_000_000)
    seconds, frac = divmod(rest, 1_000_000)
    text = f"{seconds}{_fraction(frac, 6)}s"
    if hours:
        return f"{sign}{hours}h{minutes}m{text}"
    if minutes:
        return f"{sign}{minutes}m{text}"
    return f"{sign}{text}"


def _fraction(value: int, width: int) -> str:
    digits = f"{value:0{width}d}".rstrip("0")
    return f".{digits}" if digits else ""


def build_environment_variables(environment: Mapping[str, str], port: int) -> list[EnvironmentVariable]:
    """
    Caller variables followed by PORT. A caller supplied PORT is replaced by
    the monitor port so the record never holds two PORT entries.
    """
    if "PORT" in environment and environment["PORT"] != str(port):
        console.print(
            f"[yellow]⚠️  Ignoring PORT={environment['PORT']}: PORT is always set to the monitor port ({port}).[/yellow]"
        )

    env_vars = [EnvironmentVariable(name=name, value=value) for name, value in environment.items() if name != "PORT"]
    env_vars.append(EnvironmentVariable(name="PORT", value=str(port)))
    return env_vars


def build_monitor_action(monitor: MonitorConfig) -> Action | None:
    if monitor.method == MonitorMethod.NONE:
        return None

    args = []
    if monitor.timeout:
        args += ["-timeout", format_duration(monitor.timeout)]
    args += ["-port", str(monitor.port)]
    if monitor.method == MonitorMethod.URL:
        args += ["-uri", monitor.uri]

    return Action(run=RunAction(path=HEALTHCHECK_PATH, args=args, log_source="HEALTH"))


class AppRunner:
    """
    Translates app specs into desired LRPs and drives their lifecycle on the scheduler.
    Holds no state of its own: every call re-reads the scheduler.
    """

    def __init__(
        self,
        client: SchedulerClient,
        system_domain: str,
        lrp_domain: str = "lattice",
        healthcheck_download_url: str | None = None,
    ):
        self.client = client
        self.system_domain = system_domain
        self.lrp_domain = lrp_domain
        self.healthcheck_download_url = healthcheck_download_url or get_settings().HEALTHCHECK_DOWNLOAD_URL

    @classmethod
    def from_settings(cls, settings: AppSettings | None = None) -> "AppRunner":
        settings = settings or get_settings()
        return cls(
            ReceptorClient.from_settings(settings),
            settings.SYSTEM_DOMAIN,
            lrp_domain=settings.LRP_DOMAIN,
            healthcheck_download_url=settings.HEALTHCHECK_DOWNLOAD_URL,
        )

    def create_docker_app(self, spec: AppSpec) -> None:
        if spec.name == RESERVED_APP_ID:
            raise ReservedNameError(spec.name)
        if self._desired_lrp_exists(spec.name):
            raise AlreadyExistsError(spec.name)

        self.client.upsert_domain(self.lrp_domain)

        request = self.build_desired_lrp(spec)
        console.print(f"[dim]Desiring LRP '{spec.name}' ({spec.instances} instances of {request.rootfs})...[/dim]")
        self.client.create_desired_lrp(request)
        console.print(f"[green]✅ {spec.name} created[/green]")

    def submit_lrp(self, raw: bytes | str) -> str:
        """
        Submits a desired LRP given in the scheduler's own JSON encoding, unchanged.
        Returns the process guid. Errors raised after decoding carry it in ``process_guid``.
        """
        try:
            request = DesiredLRPCreateRequest.model_validate_json(raw)
        except ValidationError as e:
            raise DecodeError(f"Invalid desired LRP: {e}") from e

        guid = request.process_guid
        if guid == RESERVED_APP_ID:
            raise ReservedNameError(guid)

        try:
            if self._desired_lrp_exists(guid):
                raise AlreadyExistsError(guid)

            self.client.upsert_domain(self.lrp_domain)
            console.print(f"[dim]Submitting LRP '{guid}'...[/dim]")
            self.client.create_desired_lrp(request)
        except AppRunnerError as e:
            e.process_guid = guid
            raise

        console.print(f"[green]✅ {guid} submitted[/green]")
        return guid

    def scale_app(self, name: str, instances: int) -> None:
        self._ensure_started(name)

        console.print(f"[dim]Scaling '{name}' to {instances} instances...[/dim]")
        self.client.update_desired_lrp(name, DesiredLRPUpdateRequest(instances=instances))

    def update_app_routes(self, name: str, overrides: Sequence[RouteOverride]) -> None:
        self._ensure_started(name)

        routes = routes_from_overrides(overrides, self.system_domain)
        console.print(f"[dim]Updating routes of '{name}' ({len(routes)} ports)...[/dim]")
        self.client.update_desired_lrp(name, DesiredLRPUpdateRequest(routes=routing_info(routes)))

    def remove_app(self, name: str) -> None:
        self._ensure_started(name)

        console.print(f"[dim]Removing '{name}'...[/dim]")
        self.client.delete_desired_lrp(name)

    def build_desired_lrp(self, spec: AppSpec) -> DesiredLRPCreateRequest:
        routes = compute_routes(
            spec.name,
            spec.exposed_ports,
            spec.monitor.port,
            spec.route_overrides,
            self.system_domain,
            no_routes=spec.no_routes,
        )

        return DesiredLRPCreateRequest(
            process_guid=spec.name,
            domain=self.lrp_domain,
            rootfs=format_for_receptor(spec.docker_image_path),
            instances=spec.instances,
            routes=routing_info(routes),
            cpu_weight=spec.cpu_weight,
            memory_mb=spec.memory_mb,
            disk_mb=spec.disk_mb,
            privileged=True,
            ports=list(spec.exposed_ports),
            start_timeout=int(spec.timeout.total_seconds()),
            log_guid=spec.name,
            log_source="APP",
            metrics_guid=spec.name,
            env=build_environment_variables(spec.environment_variables, spec.monitor.port),
            setup=Action(download=DownloadAction(from_=self.healthcheck_download_url, to="/tmp")),
            action=Action(
                run=RunAction(
                    path=spec.start_command,
                    args=list(spec.app_args),
                    privileged=spec.privileged,
                    dir=spec.working_dir,
                )
            ),
            monitor=build_monitor_action(spec.monitor),
        )

    def _ensure_started(self, name: str) -> None:
        if not self._desired_lrp_exists(name):
            raise NotStartedError(name)

    def _desired_lrp_exists(self, name: str) -> bool:
        return self.client.get_desired_lrp(name) is not None

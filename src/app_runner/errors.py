RESERVED_APP_ID = "lattice-debug"


class AppRunnerError(Exception):
    """Base error. ``process_guid`` names the record involved, when known."""

    def __init__(self, message: str, process_guid: str | None = None):
        super().__init__(message)
        self.process_guid = process_guid


class ReservedNameError(AppRunnerError):
    def __init__(self, name: str = RESERVED_APP_ID):
        super().__init__(
            f"{RESERVED_APP_ID} is a reserved app name. "
            "It is used internally to stream debug logs for lattice components.",
            process_guid=name,
        )


class AlreadyExistsError(AppRunnerError):
    def __init__(self, name: str):
        super().__init__(f"{name} is already running", process_guid=name)
        self.name = name


class NotStartedError(AppRunnerError):
    def __init__(self, name: str):
        super().__init__(f"{name} is not started.", process_guid=name)
        self.name = name


class DecodeError(AppRunnerError):
    """The raw descriptor could not be decoded; nothing was attempted."""


class ImageFormatError(AppRunnerError, ValueError):
    pass


class RemoteError(AppRunnerError):
    """Failure reported by the scheduler or its transport, surfaced as-is."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_type: str | None = None,
        process_guid: str | None = None,
    ):
        super().__init__(message, process_guid=process_guid)
        self.status_code = status_code
        self.error_type = error_type

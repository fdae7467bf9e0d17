"""Error taxonomy surfaced by the bridge to its callers."""


class BridgeError(Exception):
    """Base class for errors reported to HTTP callers."""

    code = "bridge_error"
    status_code = 500

    def __init__(self, message: str | None = None):
        super().__init__(message or self.__class__.__doc__ or self.code)

    @property
    def message(self) -> str:
        return str(self)


class ConfigurationError(BridgeError):
    """Invalid startup configuration."""

    code = "configuration_error"


# Action gateway


class InvalidRequest(BridgeError):
    """Request is missing required fields or is malformed."""

    code = "invalid_request"
    status_code = 400


class ActionTypeUnresolvable(BridgeError):
    """Action type tag is not registered."""

    code = "action_type_unresolvable"
    status_code = 400


class ActionServerUnavailable(BridgeError):
    """No remote handler became reachable within the discovery timeout."""

    code = "action_server_unavailable"
    status_code = 503


class ActionTimeout(BridgeError):
    """No terminal status arrived within the result timeout."""

    code = "action_timeout"
    status_code = 504


class TransportError(BridgeError):
    """The remote actuation transport failed."""

    code = "transport_error"
    status_code = 502


# Recording controller


class RecordingAlreadyActive(BridgeError):
    """A recording is already in progress."""

    code = "recording_already_active"
    status_code = 409


class NoActiveRecording(BridgeError):
    """No recording in progress."""

    code = "no_active_recording"
    status_code = 409


class RecordingProcessError(BridgeError):
    """The external recorder could not be launched or signalled."""

    code = "recording_process_error"
    status_code = 500


# Log store


class LogNotFound(BridgeError):
    """Log file not found."""

    code = "log_not_found"
    status_code = 404


class AppendUnsupported(BridgeError):
    """Incremental append is not supported by this store."""

    code = "append_unsupported"
    status_code = 501


# Robot configurations


class RobotConfigError(BridgeError):
    """Robot configuration rejected."""

    code = "robot_config_error"
    status_code = 400


class RobotConfigNotFound(BridgeError):
    """Robot configuration not found."""

    code = "robot_config_not_found"
    status_code = 404

"""Exceptions from the Duco bridge library."""


class DucoException(Exception):
    """Base class for Duco exceptions."""


class DucoTransportException(DucoException):
    """Failure talking to the ventilation device."""


class DucoConnectionException(DucoTransportException):
    """Exception connecting to device."""


class DucoTimeoutException(DucoTransportException):
    """The device did not answer in time."""


class DucoIOException(DucoTransportException):
    """I/O exception"""


class DucoReadException(DucoTransportException):
    """Exception reading register from device."""

    def __init__(self, message: str, modbus_exception_code: int | None = None):
        super().__init__(message)
        self.modbus_exception_code = modbus_exception_code


class DucoWriteException(DucoTransportException):
    """Exception writing register to device."""

    def __init__(self, message: str, modbus_exception_code: int | None = None):
        super().__init__(message)
        self.modbus_exception_code = modbus_exception_code


class DucoActionException(DucoTransportException):
    """The device refused a node action."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class DucoParseError(DucoException):
    """Malformed payload received from the device."""


class DucoProtocolMismatch(DucoException):
    """Two lists fetched in the same poll do not describe the same nodes."""


class DucoNodeNumberMismatch(DucoProtocolMismatch):
    """A node report was merged into a node with a different number."""

    def __init__(self, expected: int, received: int):
        super().__init__(f"Node number mismatch ({expected} <-> {received})")
        self.expected = expected
        self.received = received


class DucoCommandException(DucoException):
    """Base class for rejected commands."""


class DucoInvalidTopic(DucoCommandException):
    """The command topic does not address a node command."""


class DucoUnknownNode(DucoCommandException):
    """No node with the requested number."""

    def __init__(self, number: int):
        super().__init__(f"No node with id '{number}'")
        self.number = number


class DucoUnknownCommand(DucoCommandException):
    """The node does not declare the requested command."""


class DucoCommandNotFound(DucoCommandException):
    """No enumerated command with the requested name."""


class DucoInvalidCommandValue(DucoCommandException):
    """The command payload is not a legal value for the command."""


class DucoInvalidArgumentException(DucoException):
    """Invalid argument."""

    def __init__(self, message: str):
        super().__init__(message)

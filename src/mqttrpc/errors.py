"""Exception hierarchy shared by the requester and responder sides."""


class RpcError(Exception):
    """Base class for all mqttrpc errors."""


class ConfigError(RpcError):
    """The configuration could not be loaded or is invalid."""


# Transport errors

class TransportError(RpcError):
    """Base class for all transport-layer errors."""


class ConnectError(TransportError):
    """The transport could not establish a connection to the broker."""


class SubscribeTimeout(TransportError):
    """A subscription was not confirmed within the allotted time."""


# Protocol errors

class DecodeError(RpcError):
    """A payload could not be decoded as a Request or Response."""


class ValidationError(RpcError):
    """A well-formed envelope carries unacceptable content."""


class FieldMissingOrWrongType(ValidationError):
    """A named argument or result field is absent, or not of the
    requested type."""

    def __init__(self, name, expected, found=None):
        self.name = name
        self.expected = expected
        self.found = found

        if found is None:
            text = "field %r is missing" % (name,)
        else:
            text = "field %r is %s, expected %s" % (name, found, expected)

        ValidationError.__init__(self, text)


class HandlerError(RpcError):
    """A handler could not complete the requested operation."""


# Requester-side outcomes that are not Responses

class Timeout(RpcError, TimeoutError):
    """No reply arrived before the deadline."""


class Cancelled(RpcError):
    """The wait was abandoned because cancellation was requested."""


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

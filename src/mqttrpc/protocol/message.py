""" Class representations of the two envelopes exchanged over the broker:
    the :class:`Request` a caller publishes, and the :class:`Response` that
    comes back. The encode and decode functions here are the only place
    where an envelope is turned into bytes or back again.

    On the wire both envelopes are JSON objects::

        {"function": "calculator", "args": {"operation": "add", ...}}
        {"status": 200, "result": 42}
        {"status": 400, "message": "unexpected function: frobnicate"}
"""

from .. import json
from ..errors import DecodeError, FieldMissingOrWrongType, ValidationError


OK = 200
BAD_REQUEST = 400

# Response field names that cannot be used for result fields.

reserved = ('status', 'message')


def _type_name(value):

    if value is None:
        return 'null'
    if isinstance(value, bool):
        return 'boolean'
    if isinstance(value, int):
        return 'integer'
    if isinstance(value, str):
        return 'string'
    if isinstance(value, dict):
        return 'object'
    if isinstance(value, (list, tuple)):
        return 'array'

    return type(value).__name__



class Fields:
    """ Typed access to a mapping of named values. Both the arguments of a
        :class:`Request` and the result fields of a :class:`Response` are
        accessed this way. Every getter raises
        :class:`mqttrpc.errors.FieldMissingOrWrongType` rather than quietly
        returning a default; callers are expected to treat that as a failed
        operation.
    """

    def _mapping(self):
        raise NotImplementedError('subclasses must implement _mapping()')


    def _lookup(self, name, expected):

        mapping = self._mapping()

        if mapping is None:
            raise FieldMissingOrWrongType(name, expected)

        try:
            return mapping[name]
        except KeyError:
            raise FieldMissingOrWrongType(name, expected)


    def get(self, name):
        """ Return the named value, whatever its type. """

        return self._lookup(name, 'any value')


    def get_string(self, name):

        value = self._lookup(name, 'string')

        if isinstance(value, str):
            return value

        raise FieldMissingOrWrongType(name, 'string', _type_name(value))


    def get_integer(self, name):

        value = self._lookup(name, 'integer')

        # A boolean is an int as far as Python is concerned; it is not an
        # integer as far as the wire protocol is concerned.

        if isinstance(value, int) and not isinstance(value, bool):
            return value

        raise FieldMissingOrWrongType(name, 'integer', _type_name(value))


    def get_boolean(self, name):

        value = self._lookup(name, 'boolean')

        if isinstance(value, bool):
            return value

        raise FieldMissingOrWrongType(name, 'boolean', _type_name(value))


    def get_object(self, name):

        value = self._lookup(name, 'object')

        if isinstance(value, dict):
            return value

        raise FieldMissingOrWrongType(name, 'object', _type_name(value))


    def put(self, name, value):
        """ Store a structured (or any JSON-compatible) value. """

        self._check_name(name)
        self._mapping()[name] = value


    def put_string(self, name, value):

        if isinstance(value, str):
            pass
        else:
            raise TypeError('expected a string for %r, got %s' % (name, _type_name(value)))

        self.put(name, value)


    def put_integer(self, name, value):

        if isinstance(value, int) and not isinstance(value, bool):
            pass
        else:
            raise TypeError('expected an integer for %r, got %s' % (name, _type_name(value)))

        self.put(name, value)


    def put_boolean(self, name, value):

        if isinstance(value, bool):
            pass
        else:
            raise TypeError('expected a boolean for %r, got %s' % (name, _type_name(value)))

        self.put(name, value)


    def _check_name(self, name):

        if isinstance(name, str) and name != '':
            pass
        else:
            raise ValueError('field names must be non-empty strings')


# end of class Fields



class Request(Fields):
    """ A :class:`Request` names the *function* to invoke on the remote side,
        and carries its *args* as a dictionary. A freshly constructed request
        always has a (possibly empty) argument dictionary; a decoded request
        may have *args* set to None, which the dispatcher treats as an error.
    """

    def __init__(self, function, args=None):

        self.function = function

        if args is None:
            self.args = dict()
        else:
            self.args = dict(args)


    def __eq__(self, other):

        if isinstance(other, Request):
            return self.function == other.function and self.args == other.args

        return NotImplemented


    def __repr__(self):
        return 'Request(%r, %r)' % (self.function, self.args)


    def _mapping(self):
        return self.args


    def encode(self):
        return encode_request(self.function, self.args)


# end of class Request



class Response(Fields):
    """ A :class:`Response` carries an HTTP-style *status* code, an optional
        human readable *message*, and any number of named result fields.
        Only a status of 200 is considered a success.
    """

    def __init__(self, status, message=None, fields=None):

        self.status = status
        self.message = message

        if fields is None:
            self.fields = dict()
        else:
            self.fields = dict()
            for name, value in fields.items():
                self.put(name, value)


    @classmethod
    def bad_request(cls, message):
        return cls(BAD_REQUEST, message)


    def __eq__(self, other):

        if isinstance(other, Response):
            return (self.status == other.status and
                    self.message == other.message and
                    self.fields == other.fields)

        return NotImplemented


    def __repr__(self):

        if self.message is None:
            return 'Response(%r, fields=%r)' % (self.status, self.fields)

        return 'Response(%r, %r, fields=%r)' % (self.status, self.message, self.fields)


    def _mapping(self):
        return self.fields


    def _check_name(self, name):

        Fields._check_name(self, name)

        if name in reserved:
            raise ValueError('%r is reserved and cannot be a result field' % (name,))


    def ok(self):
        return self.status == OK


    def get_code(self):
        return self.status


    def get_message(self):

        if self.message is None:
            raise FieldMissingOrWrongType('message', 'string')

        return self.message


    def put_message(self, message):
        self.message = str(message)


    def encode(self):
        return encode_response(self)


# end of class Response



def encode_request(function, args):
    """ Return the bytes representation of a call to *function* with the
        supplied *args* dictionary. The function name must be non-empty.
    """

    if isinstance(function, str) and function != '':
        pass
    else:
        raise ValidationError('a request must name a non-empty function')

    if args is None:
        args = dict()

    envelope = dict()
    envelope['function'] = function
    envelope['args'] = dict(args)

    try:
        return json.dumps(envelope)
    except json.JSONEncodeError as e:
        raise ValidationError('request could not be encoded: ' + str(e))



def decode_request(payload):
    """ Return a :class:`Request` decoded from *payload* bytes. Unknown top
        level fields are ignored. An absent or null ``args`` field is
        decoded as ``args = None`` rather than treated as a decode failure.
    """

    envelope = _decode_object(payload)

    function = envelope.get('function', '')
    args = envelope.get('args')

    if isinstance(function, str):
        pass
    else:
        raise DecodeError("'function' must be a string, not " + _type_name(function))

    if args is None or isinstance(args, dict):
        pass
    else:
        raise DecodeError("'args' must be an object, not " + _type_name(args))

    request = Request(function)
    request.args = args
    return request



def encode_response(response):
    """ Return the bytes representation of a :class:`Response`. The message
        is omitted entirely when it is not set.
    """

    status = response.status

    if isinstance(status, int) and not isinstance(status, bool):
        pass
    else:
        raise ValidationError('response status must be an integer, not ' + _type_name(status))

    envelope = dict()
    envelope['status'] = status

    if response.message is not None:
        envelope['message'] = response.message

    envelope.update(response.fields)

    try:
        return json.dumps(envelope)
    except json.JSONEncodeError as e:
        raise ValidationError('response could not be encoded: ' + str(e))



def decode_response(payload):
    """ Return a :class:`Response` decoded from *payload* bytes. Every field
        other than ``status`` and ``message`` is a result field. A missing
        or non-integer status makes the response malformed.
    """

    envelope = _decode_object(payload)

    try:
        status = envelope.pop('status')
    except KeyError:
        raise DecodeError("response has no 'status'")

    if isinstance(status, int) and not isinstance(status, bool):
        pass
    else:
        raise DecodeError("'status' must be an integer, not " + _type_name(status))

    message = envelope.pop('message', None)

    if message is None or isinstance(message, str):
        pass
    else:
        raise DecodeError("'message' must be a string, not " + _type_name(message))

    # Result fields are taken as received; only locally built responses are
    # held to the field name rules.

    response = Response(status, message)
    response.fields = envelope
    return response



def _decode_object(payload):

    if isinstance(payload, str):
        payload = payload.encode()

    try:
        decoded = json.loads(payload)
    except (json.JSONDecodeError, TypeError) as e:
        raise DecodeError(str(e))

    if isinstance(decoded, dict):
        return decoded

    raise DecodeError('expected a JSON object, got ' + _type_name(decoded))


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

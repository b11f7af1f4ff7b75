""" The envelope codec and the request dispatcher. Nothing in this package
    knows which broker, if any, the envelopes travel over.
"""

from . import message
from . import dispatch

from .message import Request, Response, OK, BAD_REQUEST
from .message import encode_request, decode_request
from .message import encode_response, decode_response
from .dispatch import Dispatcher, Outcome

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

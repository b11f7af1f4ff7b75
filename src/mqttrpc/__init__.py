""" Python implementation of request/response remote procedure calls over a
    publish/subscribe broker. This includes the requester side, which sends
    a call and waits for its correlated reply, and the responder side, which
    dispatches calls to registered handlers and publishes their results.
"""

version = '0.3.0'

# Utility components.

from . import errors
from . import gate
from . import json
from . import log

# Submodules used by multiple other components.

from . import protocol
from . import config
from . import transport

# Primary public-facing interfaces.

from . import handlers
from .gate import Gate
from .protocol import Request, Response, Dispatcher, Outcome
from .requester import Requester
from .responder import Responder

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

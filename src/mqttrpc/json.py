''' Wrapper module around the JSON library used for every envelope that
    goes on the wire. Both :func:`dumps` and :func:`loads` deal in bytes,
    which is what the transports hand back and forth.
'''

import orjson


# orjson.dumps returns bytes. Keys must be strings; anything else is a
# TypeError, which is preferable to silently stringifying them.

dumps = orjson.dumps
loads = orjson.loads

JSONDecodeError = orjson.JSONDecodeError
JSONEncodeError = orjson.JSONEncodeError

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

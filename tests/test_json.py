import json

import pytest

import mqttrpc


def test_mqttrpc_encode_and_decode():

    input_dictionary = dict()
    input_dictionary['list'] = [1, 2, 3, 'a', 'b', None, 'c', 'z']
    input_dictionary['dict'] = {'one': 1, 'two': {'nested': True}}
    input_dictionary['none'] = None
    input_dictionary['true'] = True
    input_dictionary['false'] = False

    encoded = mqttrpc.json.dumps(input_dictionary)
    assert isinstance(encoded, bytes)

    decoded = mqttrpc.json.loads(encoded)
    assert decoded == input_dictionary

    # The standard library can read what we write.

    assert json.loads(encoded) == input_dictionary


def test_non_string_keys():

    # The standard library would quietly turn 1 into '1'; the wire protocol
    # only has string keys, so this is an error instead.

    with pytest.raises(TypeError):
        mqttrpc.json.dumps({1: 'one'})


def test_decode_error():

    with pytest.raises(ValueError):
        mqttrpc.json.loads(b'{"unterminated": ')

    with pytest.raises(mqttrpc.json.JSONDecodeError):
        mqttrpc.json.loads(b'')


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

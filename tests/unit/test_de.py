"""
Unit tests for the deserializer
"""
import random
from dataclasses import dataclass
from enum import Enum

import pytest

from muxfmt import (dump, load, load_part, Deserializer, Ok, FormatError,
        Case, CodecConfig, ShapeError, UnexpectedEof, InvalidUtf8, InvalidChar,
        InvalidBool, UnknownVariant, UnsupportedOperation, TrailingBytes,
        InvalidValue, Option, Seq, Map, Struct, Variant, struct, tuple_of, variant,
        enum,
        BOOL, CHAR, U8, U16, U32, U64, I8, I16, I32, I64, F32, F64,
        BYTES, STR, UNIT)

@dataclass(frozen=True)
class Hello:
    """Handshake message"""
    msg_type: int
    version: int

@dataclass(frozen=True)
class OpenSession:
    """Message with optional trailing fields"""
    request_id: int
    term: str
    cmd: str | None
    env: str | None

class Kind(Enum):
    """Enum with explicit values unrelated to the wire index"""
    A = 1
    B = 2
    C = 9999

def _roundtrip(value, shape, config=None):
    """Encode then decode value"""
    return load(shape, dump(value, shape, config), config).unwrap()

@pytest.mark.parametrize('shape, values', [
    (BOOL, [True, False]),
    (CHAR, ['\x00', 'A', 'é', '\ud7ff', '\ue000', '\U0010ffff']),
    (U8, [0, 0x12, 2**8 - 1]),
    (U16, [0, 0x1234, 2**16 - 1]),
    (U32, [0, 0x12345678, 2**32 - 1]),
    (U64, [0, 0x1234567887654321, 2**64 - 1]),
    (I8, [0, -2**7, 2**7 - 1]),
    (I16, [0, -2**15, 2**15 - 1]),
    (I32, [0, -2**31, 2**31 - 1]),
    (I64, [0, -2**63, 2**63 - 1]),
    (F32, [0.0, 1.5, -2.25, float('inf'), float('-inf')]),
    (F64, [0.0, 0.1, -1e300, float('inf'), 5e-324]),
    ])
def test_scalar_roundtrip(shape, values):
    """
    Scalars of every kind, including extremes, are decoded back
    """
    for value in values:
        decoded = _roundtrip(value, shape)
        assert decoded == value
        assert type(decoded) is type(value)

@pytest.mark.parametrize('shape, hexa', [
    (F32, '00000000'),
    (F32, '80000000'),
    (F32, '7fc00000'),
    (F32, 'ffc00000'),
    (F32, '7f800001'),
    (F32, 'ff800001'),
    (F32, '7fa00000'),
    (F32, '7fbfffff'),
    (F64, '0000000000000000'),
    (F64, '8000000000000000'),
    (F64, '7ff8000000000000'),
    (F64, '7ff8000000000001'),
    (F64, 'fff8000000000000'),
    ])
def test_float_bits(shape, hexa):
    """
    Float zeros and NaNs, signalling ones included, are preserved bit for bit
    """
    data = bytes.fromhex(hexa)
    value = load(shape, data).unwrap()
    assert dump(value, shape) == data

@pytest.mark.parametrize('value', ['', 'Hello, world!', 'héllo wörld', '🙂' * 100])
def test_str_roundtrip(value):
    """
    Strings are decoded back, length being counted in bytes
    """
    encoded = dump(value, STR)
    assert int.from_bytes(encoded[:4], 'big') == len(value.encode())
    assert _roundtrip(value, STR) == value

def test_bytes_roundtrip():
    """
    Bytes are decoded back without validation
    """
    value = random.randbytes(1000) + b'\xff\xfe'
    assert _roundtrip(value, BYTES) == value
    assert _roundtrip(b'', BYTES) == b''

def test_tuple_roundtrip():
    """
    Tuples are decoded field by field
    """
    value = (0x00, 0x0100, 0x1034, 0x7812)
    assert _roundtrip(value, tuple_of(U8, U16, U16, U16)) == value
    assert _roundtrip((), UNIT) == ()

def test_struct_roundtrip():
    """
    Structs are decoded field by field, then built
    """
    shape = struct(Hello, msg_type=U32, version=U32)
    assert _roundtrip(Hello(1, 4), shape) == Hello(1, 4)

    untyped = struct(None, v1=U8, v2=U16)
    assert _roundtrip({'v1': 1, 'v2': 2}, untyped) == {'v1': 1, 'v2': 2}

def test_struct_factory_failure():
    """
    Factories rejecting the decoded fields are reported as invalid values
    """
    def _factory(**_fields):
        raise ValueError('nope')
    result = load(struct(_factory, a=U8), b'\x01')
    assert isinstance(result, FormatError)
    assert isinstance(result.error, InvalidValue)

def test_tail_options():
    """
    Options at the end are absent exactly when the input is exhausted
    """
    shape = struct(OpenSession, request_id=U32, term=STR,
                   cmd=Option(STR), env=Option(STR))

    full = OpenSession(3, 'xterm', 'ls', 'A=1')
    assert _roundtrip(full, shape) == full

    partial = OpenSession(3, 'xterm', 'ls', None)
    assert _roundtrip(partial, shape) == partial

    empty = OpenSession(3, 'xterm', None, None)
    assert dump(empty, shape) == b'\x00\x00\x00\x03\x00\x00\x00\x05xterm'
    assert _roundtrip(empty, shape) == empty

def test_option_top_level():
    """
    Top-level options follow the same rule
    """
    assert load(Option(U32), b'') == Ok(None)
    assert load(Option(U32), dump(7, U32)) == Ok(7)

def test_variant_roundtrip():
    """
    Variants are decoded as index and payload
    """
    shape = variant(UNIT, U32, tuple_of(STR, U8))
    assert _roundtrip(Case(0), shape) == Case(0, ())
    assert _roundtrip(Case(1, 5), shape) == Case(1, 5)
    assert _roundtrip(Case(2, ('a', 1)), shape) == Case(2, ('a', 1))

def test_enum_roundtrip():
    """
    Enums are decoded back to their members
    """
    shape = enum(Kind)
    for member in Kind:
        assert _roundtrip(member, shape) is member

def test_variant_factory_failure():
    """
    Factories rejecting the decoded case are reported as invalid values
    """
    def _factory(index, _value):
        raise ValueError(f'no variant {index}')
    result = load(Variant((UNIT,), factory=_factory), b'\x00\x00\x00\x00')
    assert isinstance(result, FormatError)
    assert isinstance(result.error, InvalidValue)

def test_unknown_variant():
    """
    Indexes outside of the declared variants are rejected
    """
    result = load(variant(UNIT, U32), b'\x00\x00\x00\x63')
    assert isinstance(result, FormatError)
    assert isinstance(result.error, UnknownVariant)
    assert result.error.index == 99

    with pytest.raises(UnknownVariant):
        load_part(enum(Kind), b'\x00\x00\x00\x03')

@pytest.mark.parametrize('data', [
    b'',
    b'\x00\x00\x00\x01',
    b'\x00\x00\x00\x02\x00\x01\x00\x02',
    bytes(range(64)),
    ])
def test_seq_unsupported(data):
    """
    Sequences are never decoded, whatever the input
    """
    for shape in (Seq(U8), Seq(STR), Option(Seq(U16)), tuple_of(Seq(U8))):
        if data or not isinstance(shape, Option):
            result = load(shape, data)
            assert isinstance(result, FormatError)
            assert isinstance(result.error, UnsupportedOperation)

def test_map_unsupported():
    """
    Maps are never decoded
    """
    with pytest.raises(UnsupportedOperation):
        Deserializer(b'\x00\x00\x00\x00').deserialize(Map(U8, U8))

def test_truncated():
    """
    Reading past the end of input fails
    """
    result = load(U32, b'\x00\x00\x00')
    assert isinstance(result, FormatError)
    assert isinstance(result.error, UnexpectedEof)
    assert (result.error.needed, result.error.available) == (4, 3)

    with pytest.raises(UnexpectedEof):
        load_part(U8, b'')

    encoded = dump('Hello, world!', STR)
    with pytest.raises(UnexpectedEof):
        load_part(STR, encoded[:-1])

def test_invalid_utf8():
    """
    Strings must be valid utf-8
    """
    result = load(STR, b'\x00\x00\x00\x02\xff\xfe')
    assert isinstance(result, FormatError)
    assert isinstance(result.error, InvalidUtf8)

    assert load(BYTES, b'\x00\x00\x00\x02\xff\xfe') == Ok(b'\xff\xfe')

@pytest.mark.parametrize('code', [0xD800, 0xDFFF, 0x110000, 0xFFFFFFFF])
def test_invalid_char(code):
    """
    Surrogates and values over the unicode range are not chars
    """
    result = load(CHAR, code.to_bytes(4, 'big'))
    assert isinstance(result, FormatError)
    assert isinstance(result.error, InvalidChar)
    assert result.error.code == code

def test_trailing_bytes():
    """
    Unconsumed input is reported at the end of the message
    """
    deserializer = Deserializer(b'\x01\x02')
    assert deserializer.read_scalar(U8.kind) == 1
    with pytest.raises(TrailingBytes) as exc:
        deserializer.finish()
    assert exc.value.count == 1

    result = load(U8, b'\x01\x02')
    assert isinstance(result, FormatError)
    assert isinstance(result.error, TrailingBytes)

def test_load_part():
    """
    Partial loads return the bytes following the value
    """
    assert load_part(U16, b'\x00\x01\x02\x03') == (1, b'\x02\x03')
    assert load_part(STR, dump('ab', STR)) == ('ab', b'')

def test_lenient_bool():
    """
    By default any non-zero value is True
    """
    assert load(BOOL, b'\x00\x00\x00\x00') == Ok(False)
    assert load(BOOL, b'\x00\x00\x00\x01') == Ok(True)
    assert load(BOOL, b'\x00\x00\x00\x02') == Ok(True)
    assert load(BOOL, b'\xff\xff\xff\xff') == Ok(True)

def test_strict_bool():
    """
    In strict mode only 0 and 1 are booleans
    """
    config = CodecConfig(strict_bool=True)
    assert load(BOOL, b'\x00\x00\x00\x01', config) == Ok(True)
    assert load(BOOL, b'\x00\x00\x00\x00', config) == Ok(False)

    result = load(BOOL, b'\x00\x00\x00\x02', config)
    assert isinstance(result, FormatError)
    assert isinstance(result.error, InvalidBool)
    assert result.error.value == 2

def test_check_options():
    """
    Misplaced options are detected before decoding if requested
    """
    shape = struct(None, a=Option(U8), b=U8)
    config = CodecConfig(check_options=True)
    with pytest.raises(ShapeError):
        load(shape, b'\x01\x02', config)
    # Unchecked, the option greedily consumes the first byte
    assert load(shape, b'\x01\x02') == Ok({'a': 1, 'b': 2})

def test_cursor():
    """
    The cursor only moves forward by the size of each read
    """
    deserializer = Deserializer(dump((1, 'ab', 3), tuple_of(U16, STR, U32)))
    assert deserializer.remaining() == 12
    assert deserializer.read_scalar(U16.kind) == 1
    assert deserializer.remaining() == 10
    assert deserializer.read_str() == 'ab'
    assert deserializer.trailing() == b'\x00\x00\x00\x03'
    assert deserializer.read_u32() == 3
    assert deserializer.at_end()
    deserializer.finish()

def test_unwrap_raises(caplog):
    """
    Unwrapping a failed load raises the typed exception, and failures are
    logged
    """
    with pytest.raises(UnexpectedEof):
        load(U32, b'').unwrap()
    assert 'Decoding failed' in caplog.text

def test_bytearray_input():
    """
    Any bytes-like input is accepted
    """
    assert load(U16, bytearray(b'\x01\x02')) == Ok(0x0102)
    assert load(U16, memoryview(b'\x00\x01\x02')[1:]) == Ok(0x0102)

def test_struct_is_dict_when_no_factory():
    """
    Structs without factory decode to dicts
    """
    assert isinstance(load(Struct(), b'').unwrap(), dict)

"""
Deserialization of the mux wire format to native values

The format is not self-describing: the caller always names the shape it
expects, and the deserializer consumes exactly the bytes that shape requires.
"""

import logging
import struct
from typing import Any

from muxfmt.config import CodecConfig, load_config
from muxfmt.errors import (FormatException, FormatError, UnexpectedEof,
        InvalidUtf8, InvalidChar, InvalidBool, UnknownVariant,
        UnsupportedOperation, TrailingBytes)
from muxfmt.result import Ok
from muxfmt.shapes import (Shape, ScalarKind, Scalar, Bytes, Str, Option, Seq,
        Tuple, Struct, Variant, Map, ShapeError, check_tail_options)

MAX_CHAR = 0x10FFFF

def unpack_f32(data: bytes | memoryview) -> float:
    """
    Widen an f32 to a python float, keeping NaN sign and payload bits

    The payload is moved to the top of the double mantissa so that narrowing
    it back gives the same bits. struct would quiet signalling NaNs instead.
    """
    bits = int.from_bytes(data, 'big')
    mantissa = bits & 0x7FFFFF
    if (bits >> 23) & 0xFF != 0xFF or not mantissa:
        value, = struct.unpack('>f', data)
        return value
    wide = (bits >> 31) << 63 | 0x7FF << 52 | mantissa << 29
    value, = struct.unpack('>d', wide.to_bytes(8, 'big'))
    return value

class Deserializer:
    """
    Reads values from a byte buffer through a cursor that only moves forward

    One instance is meant to be used for a single message. After a failure,
    the position of the cursor is unspecified and the instance should be
    discarded.

    Args:
        data: the encoded message
        config: codec options
    """
    def __init__(self, data: bytes | bytearray | memoryview,
                 config: CodecConfig | None = None):
        self.config = load_config(config)
        self.data = memoryview(data).cast('B')
        self.position = 0

    @property
    def is_human_readable(self) -> bool:
        """Advertised flag, does not change the decoding"""
        return self.config.human_readable

    # Cursor
    # ======

    def remaining(self) -> int:
        """Number of bytes not consumed yet"""
        return len(self.data) - self.position

    def trailing(self) -> bytes:
        """Bytes not consumed yet, without consuming them"""
        return bytes(self.data[self.position:])

    def at_end(self) -> bool:
        """Whether all the input has been consumed"""
        return self.position >= len(self.data)

    def take(self, size: int) -> memoryview:
        """
        Consume exactly size bytes

        Raises:
            UnexpectedEof: if less than size bytes remain
        """
        available = self.remaining()
        if available < size:
            raise UnexpectedEof(size, available)
        start = self.position
        self.position += size
        return self.data[start:self.position]

    def finish(self) -> None:
        """
        Check that the whole message was consumed

        Raises:
            TrailingBytes: if bytes remain after the cursor
        """
        if not self.at_end():
            raise TrailingBytes(self.remaining())

    # Primitives
    # ==========

    def read_scalar(self, kind: ScalarKind) -> Any:
        """
        Consume one scalar of the given kind

        Bools and chars are further validated by their own methods.
        """
        if kind is ScalarKind.BOOL:
            return self.read_bool()
        if kind is ScalarKind.CHAR:
            return self.read_char()
        codec = kind.codec
        data = self.take(codec.size)
        if kind is ScalarKind.F32:
            return unpack_f32(data)
        value, = codec.unpack(data)
        return value

    def read_u32(self) -> int:
        """Consume a big-endian u32, used by lengths and indexes"""
        return int.from_bytes(self.take(4), 'big')

    def read_bool(self) -> bool:
        """
        Consume a bool encoded as u32

        Any non-zero value is True, unless `strict_bool` is configured in
        which case only 0 and 1 are accepted.
        """
        value = self.read_u32()
        if self.config.strict_bool and value not in (0, 1):
            raise InvalidBool(value)
        return value != 0

    def read_char(self) -> str:
        """Consume a unicode scalar value encoded as u32"""
        code = self.read_u32()
        if code > MAX_CHAR or 0xD800 <= code <= 0xDFFF:
            raise InvalidChar(code)
        return chr(code)

    def read_bytes(self) -> bytes:
        """Consume u32 length then as many raw bytes"""
        length = self.read_u32()
        return bytes(self.take(length))

    def read_str(self) -> str:
        """Consume u32 length then as many utf-8 bytes"""
        length = self.read_u32()
        data = self.take(length)
        try:
            return bytes(data).decode('utf-8')
        except UnicodeDecodeError as exc:
            raise InvalidUtf8(f'Invalid str: {exc}') from exc

    def read_option(self, inner: Shape) -> Any:
        """
        Consume an optional value

        There is no discriminant on the wire: the value is absent if and only
        if the input is exhausted. This is only correct if nothing is encoded
        after the option, which is the caller's responsibility.
        """
        if self.at_end():
            return None
        return self.deserialize(inner)

    # Compounds
    # =========

    def read_seq(self, shape: Seq) -> list:
        """
        Sequences carry no count or terminator and cannot be decoded
        """
        raise UnsupportedOperation('deserialize_seq')

    def read_tuple(self, shape: Tuple) -> tuple:
        """Consume each item in order"""
        return tuple(self.deserialize(item) for item in shape.items)

    def read_struct(self, shape: Struct) -> Any:
        """Consume each field in order and build the native object"""
        values = {}
        for field in shape.fields:
            values[field.name] = self.deserialize(field.shape)
        return shape.build(values)

    def read_variant(self, shape: Variant) -> Any:
        """
        Consume the u32 variant index, then the payload of that variant
        """
        index = self.read_u32()
        if index >= len(shape.cases):
            raise UnknownVariant(index)
        value = self.deserialize(shape.cases[index])
        return shape.build(index, value)

    def read_map(self, shape: Map) -> dict:
        """Maps have no encoding"""
        raise UnsupportedOperation('deserialize_map')

    # Dispatch
    # ========

    def deserialize(self, shape: Shape) -> Any:
        """
        Recursively consume a value of the given shape
        """
        match shape:
            case Scalar(kind):
                return self.read_scalar(kind)
            case Bytes():
                return self.read_bytes()
            case Str():
                return self.read_str()
            case Option(inner):
                return self.read_option(inner)
            case Seq():
                return self.read_seq(shape)
            case Tuple():
                return self.read_tuple(shape)
            case Struct():
                return self.read_struct(shape)
            case Variant():
                return self.read_variant(shape)
            case Map():
                return self.read_map(shape)
            case _:
                raise ShapeError(f'Not a shape: {shape!r}')

def _start(shape: Shape, data: bytes | bytearray | memoryview,
           config: CodecConfig | None) -> Deserializer:
    config = load_config(config)
    if config.check_options:
        check_tail_options(shape)
    return Deserializer(data, config)

def load_part(shape: Shape, data: bytes | bytearray | memoryview,
              config: CodecConfig | None = None) -> tuple[Any, bytes]:
    """
    Consume one value from the start of data.

    Returns:
        The decoded value and the bytes following it

    Raises:
        FormatException: on the first violation encountered
    """
    deserializer = _start(shape, data, config)
    value = deserializer.deserialize(shape)
    return value, deserializer.trailing()

def load(shape: Shape, data: bytes | bytearray | memoryview,
         config: CodecConfig | None = None) -> Ok[Any] | FormatError:
    """
    Decode a complete message, which must contain exactly one value

    Returns:
        Ok with the value, or FormatError wrapping the first violation
    """
    try:
        deserializer = _start(shape, data, config)
        value = deserializer.deserialize(shape)
        deserializer.finish()
    except FormatException as exc:
        logging.exception('Decoding failed')
        return FormatError(exc)
    return Ok(value)

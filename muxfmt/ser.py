"""
Serialization of native values to the mux wire format
"""

import logging
import math
import struct
from collections.abc import Iterable, Mapping, Sequence, Sized
from typing import Any

from muxfmt.config import CodecConfig, load_config
from muxfmt.errors import (FormatException, FormatError, InvalidValue,
        LengthOverflow, UnsupportedOperation)
from muxfmt.result import Ok
from muxfmt.shapes import (Shape, ScalarKind, Scalar, Bytes, Str, Option, Seq,
        Tuple, Struct, Variant, Map, ShapeError, check_tail_options)

MAX_LENGTH = 2**32 - 1
"""
Largest length that fits the u32 prefix of strings, bytes and packets
"""

HEADER_SIZE = 4

def pack_length(length: int) -> bytes:
    """
    Encode a string, bytes or packet length

    Raises:
        LengthOverflow: if the length does not fit in 32 bits
    """
    if length > MAX_LENGTH:
        raise LengthOverflow(length)
    return length.to_bytes(4, 'big')

def pack_f32_nan(value: float) -> bytes:
    """
    Narrow a NaN to f32 keeping its sign and payload bits

    struct would quiet signalling NaNs on the way, so the bits are moved by
    hand: the top 23 bits of the double mantissa become the f32 mantissa.
    """
    bits, = struct.unpack('>Q', struct.pack('>d', value))
    mantissa = (bits & 0xFFFFFFFFFFFFF) >> 29
    if not mantissa:
        # Payload only in the dropped low bits, would turn into an infinity
        mantissa = 0x400000
    return ((bits >> 63) << 31 | 0x7F800000 | mantissa).to_bytes(4, 'big')

def pack_scalar(kind: ScalarKind, value: Any) -> bytes:
    """
    Encode a scalar value of the given kind

    Raises:
        InvalidValue: if the python value cannot be represented in the kind
    """
    if kind is ScalarKind.BOOL:
        if not isinstance(value, bool):
            raise InvalidValue(f'bool expected, got {type(value).__name__}')
        value = int(value)
    elif kind is ScalarKind.CHAR:
        if not isinstance(value, str) or len(value) != 1:
            raise InvalidValue(f'single character expected, got {value!r}')
        value = ord(value)
        if 0xD800 <= value <= 0xDFFF:
            raise InvalidValue(f'surrogate {value:#x} is not a valid char')
    elif kind is ScalarKind.F32 and isinstance(value, float) and math.isnan(value):
        return pack_f32_nan(value)
    try:
        return kind.codec.pack(value)
    except (struct.error, OverflowError, TypeError) as exc:
        raise InvalidValue(f'Cannot encode {value!r} as {kind.value}: {exc}') from exc

class Serializer:
    """
    Appends the encoding of values to an owned buffer

    One instance is meant to be used for a single message, then discarded.

    Args:
        config: codec options
        header: if True, reserve room for a u32 length prefix that is filled
            with the payload size by `get_output`
    """
    def __init__(self, config: CodecConfig | None = None, header: bool = False):
        self.config = load_config(config)
        self.header = header
        self.output = bytearray(HEADER_SIZE if header else 0)

    @property
    def is_human_readable(self) -> bool:
        """Advertised flag, does not change the encoding"""
        return self.config.human_readable

    def get_output(self) -> bytes:
        """
        Return the encoded bytes, with the length prefix filled if requested
        """
        if self.header:
            self.output[:HEADER_SIZE] = pack_length(len(self.output) - HEADER_SIZE)
        return bytes(self.output)

    # Primitives
    # ==========

    def write_scalar(self, kind: ScalarKind, value: Any) -> None:
        """Append fixed-width big-endian encoding"""
        self.output += pack_scalar(kind, value)

    def write_bytes(self, value: bytes | bytearray | memoryview) -> None:
        """Append u32 length then raw bytes"""
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise InvalidValue(f'bytes expected, got {type(value).__name__}')
        data = bytes(value)
        self.output += pack_length(len(data))
        self.output += data

    def write_str(self, value: str) -> None:
        """Append u32 byte length then utf-8 bytes"""
        if not isinstance(value, str):
            raise InvalidValue(f'str expected, got {type(value).__name__}')
        try:
            data = value.encode('utf-8')
        except UnicodeEncodeError as exc:
            raise InvalidValue(f'Cannot encode {value!r} as utf-8') from exc
        self.output += pack_length(len(data))
        self.output += data

    def write_none(self) -> None:
        """Absent options take no room"""

    def write_some(self, value: Any, inner: Shape) -> None:
        """Present options are encoded as their value, without a wrapper"""
        self.serialize(value, inner)

    # Compounds
    # =========
    # Counts are never written, begin and end only exist for symmetry

    def begin_seq(self, count_hint: int | None = None) -> None:
        """Start a sequence"""

    def end_seq(self) -> None:
        """End a sequence"""

    def begin_tuple(self, count_hint: int) -> None:
        """Start a tuple"""

    def end_tuple(self) -> None:
        """End a tuple"""

    def begin_struct(self, count_hint: int) -> None:
        """Start a struct"""

    def end_struct(self) -> None:
        """End a struct"""

    def begin_variant(self, index: int) -> None:
        """Append the variant index. The payload follows as a separate value."""
        self.write_scalar(ScalarKind.U32, index)

    def write_map(self, value: Mapping, shape: Map) -> None:
        """Maps have no encoding"""
        raise UnsupportedOperation('serialize_map')

    # Dispatch
    # ========

    def serialize(self, value: Any, shape: Shape) -> None:
        """
        Recursively append the encoding of value according to shape
        """
        match shape:
            case Scalar(kind):
                self.write_scalar(kind, value)
            case Bytes():
                self.write_bytes(value)
            case Str():
                self.write_str(value)
            case Option(inner):
                if value is None:
                    self.write_none()
                else:
                    self.write_some(value, inner)
            case Seq(item):
                if not isinstance(value, Iterable) or isinstance(value, (str, bytes)):
                    raise InvalidValue(f'Sequence expected, got {type(value).__name__}')
                self.begin_seq(len(value) if isinstance(value, Sized) else None)
                for element in value:
                    self.serialize(element, item)
                self.end_seq()
            case Tuple(items):
                # Unit payloads of variants are given as None
                if value is None and not items:
                    value = ()
                if not isinstance(value, Sequence) or len(value) != len(items):
                    raise InvalidValue(
                        f'Sequence of {len(items)} items expected, got {value!r}')
                self.begin_tuple(len(items))
                for element, item in zip(value, items):
                    self.serialize(element, item)
                self.end_tuple()
            case Struct(fields):
                self.begin_struct(len(fields))
                for element, field in zip(shape.members(value), fields):
                    self.serialize(element, field.shape)
                self.end_struct()
            case Variant(cases):
                case = shape.split(value)
                self.begin_variant(case.index)
                self.serialize(case.value, cases[case.index])
            case Map():
                self.write_map(value, shape)
            case _:
                raise ShapeError(f'Not a shape: {shape!r}')

def dump(value: Any, shape: Shape, config: CodecConfig | None = None) -> bytes:
    """
    Encode a single value

    Raises:
        FormatException: on the first value that cannot be encoded
    """
    config = load_config(config)
    if config.check_options:
        check_tail_options(shape)
    serializer = Serializer(config)
    serializer.serialize(value, shape)
    return serializer.get_output()

def to_bytes(value: Any, shape: Shape, config: CodecConfig | None = None
             ) -> Ok[bytes] | FormatError:
    """
    Encode a single value, returning failures instead of raising them
    """
    try:
        return Ok(dump(value, shape, config))
    except FormatException as exc:
        logging.exception('Encoding failed')
        return FormatError(exc)

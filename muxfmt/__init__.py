"""
Muxfmt, the data format used to talk to an ssh multiplexing master.

Format details:
 - All integers are encoded in big endian;
 - Booleans and chars are encoded as u32;
 - Strings and bytes are encoded as a u32 byte length followed by the content;
 - None takes no room while a present optional has the same encoding as its
   value, which only works for optional parameters at the end of a message;
 - Structs and tuples are encoded as the concatenation of their members, unit
   structs and tuples take no room;
 - Sequences are encoded like tuples, and therefore cannot be decoded;
 - Variants are encoded as a u32 index followed by the payload;
 - Maps are not supported.
"""

from .result import Ok, Error, Result
from .errors import (FormatException, FormatError, UnexpectedEof, InvalidUtf8,
        InvalidChar, InvalidBool, LengthOverflow, UnknownVariant,
        UnsupportedOperation, TrailingBytes, FrameTooLarge, InvalidValue)
from .config import CodecConfig, ConfigError, load_config
from .shapes import (ScalarKind, Scalar, Bytes, Str, Option, Seq, Tuple, Field,
        Struct, Variant, Case, Map, Shape, ShapeError,
        BOOL, CHAR, U8, U16, U32, U64, I8, I16, I32, I64, F32, F64,
        BYTES, STR, UNIT, struct, tuple_of, variant, enum, check_tail_options)
from .ser import Serializer, dump, to_bytes
from .de import Deserializer, load, load_part
from .frame import frame, dump_frame, split_frame, make_receiver, send_frame, recv_frame

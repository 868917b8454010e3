"""
Shape descriptors

The wire format is not self-describing, so every encode and decode call is
driven by an explicit description of the expected structure. Shapes are
immutable and can be defined once at module level and shared.

Besides describing the layout, struct and variant shapes also carry the glue
used to take native objects apart when encoding and to build them back when
decoding.
"""

import struct as _struct
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, TypeAlias

from muxfmt.errors import InvalidValue

class ShapeError(TypeError):
    """
    A shape is not usable as given
    """

class ScalarKind(str, Enum):
    """
    Fixed-width scalar kinds and their wire layout
    """
    BOOL = 'bool'
    CHAR = 'char'
    U8 = 'u8'
    U16 = 'u16'
    U32 = 'u32'
    U64 = 'u64'
    I8 = 'i8'
    I16 = 'i16'
    I32 = 'i32'
    I64 = 'i64'
    F32 = 'f32'
    F64 = 'f64'

    @property
    def codec(self) -> _struct.Struct:
        """Big-endian packer for the kind"""
        return _CODECS[self]

    @property
    def width(self) -> int:
        """Number of bytes used on the wire"""
        return _CODECS[self].size

# bool and char are widened to u32
_CODECS: dict[ScalarKind, _struct.Struct] = {
        ScalarKind.BOOL: _struct.Struct('>I'),
        ScalarKind.CHAR: _struct.Struct('>I'),
        ScalarKind.U8: _struct.Struct('>B'),
        ScalarKind.U16: _struct.Struct('>H'),
        ScalarKind.U32: _struct.Struct('>I'),
        ScalarKind.U64: _struct.Struct('>Q'),
        ScalarKind.I8: _struct.Struct('>b'),
        ScalarKind.I16: _struct.Struct('>h'),
        ScalarKind.I32: _struct.Struct('>i'),
        ScalarKind.I64: _struct.Struct('>q'),
        ScalarKind.F32: _struct.Struct('>f'),
        ScalarKind.F64: _struct.Struct('>d'),
        }

# Shapes
# ======

@dataclass(frozen=True)
class Scalar:
    """A fixed-width scalar"""
    kind: ScalarKind

@dataclass(frozen=True)
class Bytes:
    """Length-prefixed raw bytes"""

@dataclass(frozen=True)
class Str:
    """Length-prefixed utf-8 string"""

@dataclass(frozen=True)
class Option:
    """
    Optional value, encoded as nothing or as the inner value

    Only meaningful at the end of a message, since there is no discriminant.
    """
    inner: 'Shape'

@dataclass(frozen=True)
class Seq:
    """
    Homogeneous sequence, encoded as the concatenation of its items

    There is no count on the wire, so sequences can be encoded but never
    decoded.
    """
    item: 'Shape'

@dataclass(frozen=True)
class Tuple:
    """Fixed-size heterogeneous tuple, the empty tuple being the unit"""
    items: tuple['Shape', ...] = ()

@dataclass(frozen=True)
class Field:
    """Named struct member"""
    name: str
    shape: 'Shape'

@dataclass(frozen=True)
class Struct:
    """
    Record with named fields, encoded as its fields in declaration order

    Attributes:
        fields: the members, in wire order
        factory: callable used to build the decoded object from the fields
            passed as keyword arguments. If None, a dict is produced.
    """
    fields: tuple[Field, ...] = ()
    factory: Callable[..., Any] | None = None

    def members(self, obj: Any) -> list[Any]:
        """
        Extract field values from an object, in wire order

        Fields are read as attributes, or as items from mappings.
        """
        values = []
        for field in self.fields:
            try:
                if isinstance(obj, Mapping):
                    values.append(obj[field.name])
                else:
                    values.append(getattr(obj, field.name))
            except (KeyError, AttributeError) as exc:
                raise InvalidValue(
                    f'Missing field {field.name!r} in {type(obj).__name__}'
                    ) from exc
        return values

    def build(self, values: dict[str, Any]) -> Any:
        """Create the native object from decoded fields"""
        if self.factory is None:
            return values
        try:
            return self.factory(**values)
        except (TypeError, ValueError) as exc:
            raise InvalidValue(f'Could not build {self.factory!r}: {exc}') from exc

@dataclass(frozen=True)
class Case:
    """
    Native value of a variant when no custom factory is given

    Attributes:
        index: the variant index, as encoded on the wire
        value: the payload, None for unit variants
    """
    index: int
    value: Any = None

@dataclass(frozen=True)
class Variant:
    """
    Tagged union, encoded as a u32 index followed by the payload

    Attributes:
        cases: the payload shape of each variant, by index. Unit variants use
            the `UNIT` shape.
        factory: callable building the native object from the index and the
            decoded payload. If None, a `Case` is produced.
        to_case: callable converting a native object back to a `Case` when
            encoding. If None, the object must already be a `Case`.
    """
    cases: tuple['Shape', ...]
    factory: Callable[[int, Any], Any] | None = None
    to_case: Callable[[Any], Case] | None = None

    def build(self, index: int, value: Any) -> Any:
        """Create the native object from a decoded case"""
        if self.factory is None:
            return Case(index, value)
        try:
            return self.factory(index, value)
        except (TypeError, ValueError) as exc:
            raise InvalidValue(f'Cannot build variant {index}: {exc}') from exc

    def split(self, obj: Any) -> Case:
        """Convert native object to a case, checking the index"""
        if self.to_case is None:
            case = obj
        else:
            try:
                case = self.to_case(obj)
            except (TypeError, ValueError) as exc:
                raise InvalidValue(f'Not a variant value: {obj!r}') from exc
        if not isinstance(case, Case):
            raise InvalidValue(f'Variant value expected, got {type(obj).__name__}')
        if not isinstance(case.index, int) or isinstance(case.index, bool):
            raise InvalidValue(f'Variant index must be an int, got {case.index!r}')
        if not 0 <= case.index < len(self.cases):
            raise InvalidValue(f'Variant index {case.index} out of range')
        return case

@dataclass(frozen=True)
class Map:
    """Key-value mapping. Present for completeness, not supported by the codec"""
    key: 'Shape'
    value: 'Shape'

Shape: TypeAlias = Scalar | Bytes | Str | Option | Seq | Tuple | Struct | Variant | Map

BOOL = Scalar(ScalarKind.BOOL)
CHAR = Scalar(ScalarKind.CHAR)
U8 = Scalar(ScalarKind.U8)
U16 = Scalar(ScalarKind.U16)
U32 = Scalar(ScalarKind.U32)
U64 = Scalar(ScalarKind.U64)
I8 = Scalar(ScalarKind.I8)
I16 = Scalar(ScalarKind.I16)
I32 = Scalar(ScalarKind.I32)
I64 = Scalar(ScalarKind.I64)
F32 = Scalar(ScalarKind.F32)
F64 = Scalar(ScalarKind.F64)
BYTES = Bytes()
STR = Str()
UNIT = Tuple()

# Builders
# ========

def struct(factory: Callable[..., Any] | None = None, /, **fields: 'Shape') -> Struct:
    """
    Shortcut to declare a struct, fields being given in wire order

    Example:
        >>> point = struct(Point, x=I32, y=I32)
    """
    return Struct(
            tuple(Field(name, shape) for name, shape in fields.items()),
            factory)

def tuple_of(*items: 'Shape') -> Tuple:
    """Shortcut to declare a tuple"""
    return Tuple(items)

def variant(*cases: 'Shape') -> Variant:
    """Shortcut to declare a variant producing and consuming `Case` values"""
    return Variant(cases)

def enum(cls: type[Enum]) -> Variant:
    """
    Variant made only of unit cases, mapped to the members of an enum

    The wire index is the position of the member in the enum definition, not
    its value.
    """
    members = list(cls)
    return Variant(
            (UNIT,) * len(members),
            factory=lambda index, _value: members[index],
            to_case=lambda member: Case(members.index(member)),
            )

# Checks
# ======

def check_tail_options(shape: 'Shape') -> None:
    """
    Check that options only appear at the end of the message

    Options have no discriminant, so the only way to tell an absent value is
    to reach the end of the input. This holds only if nothing follows the
    option on the wire.

    Raises:
        ShapeError: naming the path of the first misplaced option
    """
    _check(shape, True, '$')

def _check(shape: 'Shape', at_tail: bool, path: str) -> None:
    match shape:
        case Option():
            _check_members([(path, shape)], at_tail)
        case Struct():
            _check_members(
                [(f'{path}.{field.name}', field.shape) for field in shape.fields],
                at_tail)
        case Tuple():
            _check_members(
                [(f'{path}[{i}]', item) for i, item in enumerate(shape.items)],
                at_tail)
        case Variant():
            for i, case in enumerate(shape.cases):
                _check(case, at_tail, f'{path}<{i}>')
        case Seq():
            _check(shape.item, False, f'{path}[]')

def _check_members(members: list[tuple[str, 'Shape']], at_tail: bool) -> None:
    """
    Members may be options only if all the following members are options too.
    The content of a member can end the message only if the member is last.
    """
    for i, (path, member) in enumerate(members):
        rest = members[i + 1:]
        last = at_tail and not rest
        if isinstance(member, Option):
            if not (at_tail and all(isinstance(m, Option) for _, m in rest)):
                raise ShapeError(f'Option at {path} is not at the end of the message')
            _check(member.inner, last, path)
        else:
            _check(member, last, path)

"""
Failure kinds shared by the serializer and the deserializer

The codec internals raise one of the `FormatException` subclasses below. The
top-level entry points catch them and hand them back wrapped in a
`FormatError`, which is a result value and not meant to be raised.
"""

from muxfmt.result import Error

class FormatException(ValueError):
    """
    Base class of all errors raised while encoding or decoding
    """

class UnexpectedEof(FormatException):
    """
    Fewer bytes remain than the current read requires

    Attributes:
        needed: number of bytes the read required
        available: number of bytes that were left in the input
    """
    def __init__(self, needed: int, available: int):
        super().__init__(f'Unexpected end of input: needed {needed} bytes,'
                f' {available} available')
        self.needed = needed
        self.available = available

class InvalidUtf8(FormatException):
    """
    String bytes are not valid UTF-8
    """

class InvalidChar(FormatException):
    """
    A decoded u32 is not a valid unicode scalar value

    Attributes:
        code: the offending value
    """
    def __init__(self, code: int):
        super().__init__(f'Invalid char: {code:#x}')
        self.code = code

class InvalidBool(FormatException):
    """
    A decoded bool is neither 0 nor 1, only raised in strict mode

    Attributes:
        value: the offending value
    """
    def __init__(self, value: int):
        super().__init__(f'Invalid bool encoding: {value}')
        self.value = value

class LengthOverflow(FormatException):
    """
    A string or bytes length does not fit the 32-bit length field

    Attributes:
        length: the offending byte length
    """
    def __init__(self, length: int):
        super().__init__(f'Bytes must not be larger than u32::MAX, got {length}')
        self.length = length

class UnknownVariant(FormatException):
    """
    A decoded variant index is outside the declared range

    Attributes:
        index: the decoded index
    """
    def __init__(self, index: int):
        super().__init__(f'Unknown variant index {index}')
        self.index = index

class UnsupportedOperation(FormatException):
    """
    Attempted to decode a sequence or a map, or to encode a map

    Attributes:
        operation: name of the rejected operation
    """
    def __init__(self, operation: str):
        super().__init__(f'Unsupported {operation}')
        self.operation = operation

class TrailingBytes(FormatException):
    """
    Unconsumed input remains after the end of the message

    Attributes:
        count: number of unconsumed bytes
    """
    def __init__(self, count: int):
        super().__init__(f'{count} trailing bytes at end of input')
        self.count = count

class FrameTooLarge(FormatException):
    """
    A packet announces a payload longer than the configured maximum

    Attributes:
        size: the announced payload length
        max_size: the configured maximum
    """
    def __init__(self, size: int, max_size: int):
        super().__init__(f'Packet of {size} bytes exceeds maximum of {max_size}')
        self.size = size
        self.max_size = max_size

class InvalidValue(FormatException):
    """
    A native value cannot be encoded with the shape it was given
    """

class FormatError(Error[FormatException]):
    """Error value to be returned on failed encoding or decoding"""

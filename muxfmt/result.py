"""
Simple tagged unions of values with error types to use as return value
"""

import traceback
import logging
from typing import TypeAlias, Generic, TypeVar, NoReturn
from dataclasses import dataclass

OkT = TypeVar('OkT', covariant=True) # pylint: disable=typevar-name-incorrect-variance

@dataclass(frozen=True)
class Ok(Generic[OkT]):
    """
    Succesful result variant
    """
    value: OkT

    def unwrap(self) -> OkT:
        """Unsafe unpacking"""
        return self.value

ErrMessageT = TypeVar('ErrMessageT')

class Error(Exception, Generic[ErrMessageT]):
    """
    Alternative to exception meant to be returned rather than thrown

    This object collects a stack trace that can be printed, but because "true"
    tracebacks are not meant to be created from python, this makes no attempt
    to match the Exception interface. It inherits Exception purely for typing
    purposes.

    The error attribute carries the details of the failure, i.e. a
    human-readable string or the exception that caused it.
    """
    error: ErrMessageT
    stack_summary: list[traceback.FrameSummary]

    def unwrap(self) -> NoReturn:
        """Unsafe unpacking"""
        logging.error('Unwrap failed: %s', self)
        if isinstance(self.error, BaseException):
            raise self.error
        raise RuntimeError('Unwrapped failed')

    def __init__(self, error: ErrMessageT):
        super().__init__(error)
        self.error = error
        self.stack_summary = traceback.extract_stack()[:-1]

    def __str__(self):
        """
        This error with its traceback
        """
        return ''.join(traceback.format_list(self.stack_summary) + [
            f'{self.__class__.__module__}.{self.__class__.__qualname__}: {self.error}'
            ])


Result: TypeAlias = Ok[OkT] | Error

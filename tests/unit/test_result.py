"""
Unit tests for result types
"""
import pytest

from muxfmt.result import Ok, Error

def test_unwrap(caplog):
    """
    Unwrapping an error raises, re-raising the wrapped exception if any
    """
    assert Ok(1).unwrap() == 1
    with pytest.raises(RuntimeError):
        Error('bad').unwrap()
    with pytest.raises(KeyError):
        Error(KeyError('k')).unwrap()
    assert 'Unwrap failed' in caplog.text

def test_str():
    """
    Errors print the stack where they were created
    """
    text = str(Error('bad'))
    assert 'test_str' in text
    assert text.endswith('muxfmt.result.Error: bad')

"""
Packet framing used on the mux control socket

Every message is sent as a packet made of the payload length as a big-endian
u32, followed by the payload itself.
"""

import logging
import socket
from typing import Any, Callable

from muxfmt.config import CodecConfig, load_config
from muxfmt.errors import FormatException, FormatError, FrameTooLarge, UnexpectedEof
from muxfmt.result import Ok
from muxfmt.ser import Serializer, HEADER_SIZE, pack_length
from muxfmt.shapes import Shape, check_tail_options

def _max_size(max_size: int | None, config: CodecConfig | None) -> int:
    """Explicit limit, else the configured one"""
    if max_size is not None:
        return max_size
    return load_config(config).max_frame_size

def frame(payload: bytes) -> bytes:
    """
    Prefix payload with its length

    Raises:
        LengthOverflow: if the payload is too long for the u32 prefix
    """
    return pack_length(len(payload)) + payload

def dump_frame(value: Any, shape: Shape, config: CodecConfig | None = None) -> bytes:
    """
    Encode a value directly as a complete packet

    The length prefix is reserved in the serializer buffer and filled at the
    end, so the payload is never copied to be framed.
    """
    config = load_config(config)
    if config.check_options:
        check_tail_options(shape)
    serializer = Serializer(config, header=True)
    serializer.serialize(value, shape)
    return serializer.get_output()

def split_frame(data: bytes, max_size: int | None = None,
                config: CodecConfig | None = None) -> Ok[tuple[bytes, bytes]] | FormatError:
    """
    Extract the first packet from data

    Returns:
        Ok with the payload and the bytes following the packet, or a
        FormatError if the packet is incomplete or too large.
    """
    max_size = _max_size(max_size, config)
    try:
        if len(data) < HEADER_SIZE:
            raise UnexpectedEof(HEADER_SIZE, len(data))
        size = int.from_bytes(data[:HEADER_SIZE], 'big')
        if size > max_size:
            raise FrameTooLarge(size, max_size)
        end = HEADER_SIZE + size
        if len(data) < end:
            raise UnexpectedEof(size, len(data) - HEADER_SIZE)
    except FormatException as exc:
        logging.error('Bad packet: %s', exc)
        return FormatError(exc)
    return Ok((data[HEADER_SIZE:end], data[end:]))

def make_receiver(callback: Callable[[bytes], None], max_size: int | None = None,
                  config: CodecConfig | None = None) -> Callable[[bytes], None]:
    """
    Build a packet parser

    The returned function can be fed with chunks of any size as they are
    read from a stream, and calls `callback` with each complete payload.

    Raises (from the returned function):
        FrameTooLarge: when a header announces a payload over max_size. The
            stream cannot be resynchronized after that.
    """
    max_size = _max_size(max_size, config)
    buffer = bytearray() # Leftover bytes from previous calls
    next_size: int | None = None # Size of the pending payload, None if in header

    def _on_bytes(new_buf: bytes) -> None:
        nonlocal next_size

        buffer.extend(new_buf)

        # Parse as many segments as possible
        while True:
            if next_size is None:
                if len(buffer) < HEADER_SIZE:
                    return
                size = int.from_bytes(buffer[:HEADER_SIZE], 'big')
                if size > max_size:
                    logging.warning('Packet too large (%d bytes), dropping stream', size)
                    raise FrameTooLarge(size, max_size)
                del buffer[:HEADER_SIZE]
                next_size = size
            else:
                if len(buffer) < next_size:
                    return
                payload = bytes(buffer[:next_size])
                del buffer[:next_size]
                next_size = None
                callback(payload)

    return _on_bytes

def send_frame(sock: socket.socket, payload: bytes) -> None:
    """
    Send a single packet over a stream socket
    """
    sock.sendall(frame(payload))

def _recv_exactly(sock: socket.socket, size: int) -> bytes:
    chunks = []
    received = 0
    while received < size:
        chunk = sock.recv(size - received)
        if not chunk:
            raise UnexpectedEof(size, received)
        chunks.append(chunk)
        received += len(chunk)
    return b''.join(chunks)

def recv_frame(sock: socket.socket, max_size: int | None = None,
               config: CodecConfig | None = None) -> bytes:
    """
    Synchronously receive a single packet from a stream socket

    Raises:
        UnexpectedEof: if the peer closes the connection mid-packet
        FrameTooLarge: if the announced payload is over max_size
    """
    max_size = _max_size(max_size, config)
    size = int.from_bytes(_recv_exactly(sock, HEADER_SIZE), 'big')
    if size > max_size:
        raise FrameTooLarge(size, max_size)
    return _recv_exactly(sock, size)

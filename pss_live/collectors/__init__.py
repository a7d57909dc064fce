"""Collectors for receiving scoring datagrams."""

from .udp_listener import UDPListener, RawDatagram, DEFAULT_PORT

__all__ = ['UDPListener', 'RawDatagram', 'DEFAULT_PORT']

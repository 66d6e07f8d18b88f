import logging
import select
import socket

from tlsconnector.connector.base import Connector, ConnectorDisconnectedEvent, ConnectorError
from tlsconnector.support.mixins import CommonEqualityMixin

logger = logging.getLogger(__name__)

# size of the scratch buffer each read is staged in
BUFFER_SIZE = 65535


class RemoteEndpoint(CommonEqualityMixin):
    """
    Describes the remote end of a TCP connection.
    """
    def __init__(self, host, port):
        self._host = host
        self._port = port

    @classmethod
    def from_address(cls, address):
        """
        :param address: the address as returned by socket.getpeername(). IPv6 addresses carry
            flow info and scope id, which are dropped.
        """
        return cls(address[0], address[1])

    @property
    def host(self):
        return self._host

    @property
    def port(self):
        return self._port

    def __str__(self):
        host = self._host
        if ':' in host:
            host = '[%s]' % host
        return '%s:%s' % (host, self._port)

    def __repr__(self):
        return 'RemoteEndpoint(%r, %r)' % (self._host, self._port)


class SocketConnector(Connector):
    """
    A straight forward socket-based connector that does not use any separate threading.
    It relies completely on the buffering in the OS network layer.

    The connector is connected on construction and is closed either by close() or when a read
    finds that the peer has closed the stream. Once closed, every operation except `connected`
    raises ConnectorError.
    """

    _failure_message = "Failed to establish connection"

    def __init__(self, address, port, timeout=None):
        """
        Connects to the given endpoint.
        :param address: the host name or IP address to connect to
        :param port: the TCP port to connect to
        :param timeout: the time in seconds a blocking operation may take, None to block indefinitely
        :raises ConnectorError: when the connection cannot be established
        """
        super().__init__()
        self._buffer = bytearray(BUFFER_SIZE)
        self._view = memoryview(self._buffer)
        self._remote = RemoteEndpoint(address, port)
        self._connected = False
        self._sock = None
        sock = None
        try:
            sock = self._open(address, port, timeout)
            self._remote = RemoteEndpoint.from_address(sock.getpeername())
        except (OSError, ValueError) as e:
            if sock is not None:
                sock.close()
            logger.warning("%s to %s: %s" % (self._failure_message, self._remote, e))
            raise ConnectorError("%s to %s: %s" % (self._failure_message, self._remote, e)) from e
        self._sock = sock
        self._connected = True
        logger.info("opened connection to %s" % self._remote)

    def _open(self, address, port, timeout) -> socket.socket:
        """ Template method that opens the socket. Any socket created is closed on failure. """
        sock = socket.create_connection((address, port), timeout)
        try:
            # small messages are sent as soon as they are written
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        except OSError:
            sock.close()
            raise
        return sock

    @property
    def endpoint(self) -> RemoteEndpoint:
        return self._remote

    def check_closed(self):
        if self._sock is None:
            raise ConnectorError("Connection is closed: %s" % self._remote)

    @property
    def connected(self) -> bool:
        sock = self._sock
        if sock is None:
            return False
        return sock.fileno() != -1

    def close(self):
        self.check_closed()
        sock = self._sock
        self._sock = None
        self._connected = False
        try:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass    # the peer may have closed the socket already
            sock.close()
            logger.info("closed connection to %s" % self._remote)
        except OSError as e:
            raise ConnectorError("Error closing socket for: %s" % self._remote) from e
        finally:
            self.events.fire(ConnectorDisconnectedEvent(self))

    @property
    def available(self) -> bool:
        self.check_closed()
        try:
            return self._probe()
        except OSError as e:
            raise ConnectorError("Error retrieving data availability for: %s" % self._remote) from e

    def _probe(self) -> bool:
        """ Determines if data can be read without blocking. Must not consume any data. """
        readable, _, _ = select.select([self._sock], [], [], 0)
        if not readable:
            return False
        # readable with nothing to peek is the end of the stream
        return len(self._sock.recv(1, socket.MSG_PEEK)) > 0

    def read(self):
        """
        Reads what is available, blocking until at least one byte has arrived.
        :return: a memoryview over the bytes read. The view shares the connector's buffer, and is
            only valid until the next call to read(). None is returned when the peer has closed the
            stream, in which case this connector is closed too, or when the connector was closed
            while the read was blocked.
        """
        self.check_closed()
        try:
            count = self._receive()
        except (OSError, ValueError) as e:
            # ValueError is raised by an SSL socket closed underneath the read
            if not self._connected:
                logger.debug("read from %s ended by close: %s" % (self._remote, e))
                return None
            logger.warning("error reading from %s: %s" % (self._remote, e))
            raise ConnectorError("Error reading from connection to: %s" % self._remote) from e

        if count == 0:
            logger.debug("end of stream from %s" % self._remote)
            if self._sock is not None:
                self.close()
            return None
        return self._view[:count]

    def _receive(self) -> int:
        """ Reads into the scratch buffer, returning the number of bytes read. 0 is the end of the stream. """
        return self._sock.recv_into(self._buffer)

    def write(self, data):
        """
        Writes all of the given bytes-like object. To write part of a buffer, pass a memoryview slice.
        """
        self.check_closed()
        try:
            self._sock.sendall(data)
        except OSError as e:
            logger.warning("error writing to %s: %s" % (self._remote, e))
            raise ConnectorError("Error writing to connection: %s" % self._remote) from e

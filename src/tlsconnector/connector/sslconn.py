import logging
import select
import ssl

from tlsconnector.connector.socketconn import SocketConnector, BUFFER_SIZE

logger = logging.getLogger(__name__)

# protocol versions that may be negotiated. Anything older is refused during the handshake.
ENABLED_PROTOCOLS = (ssl.TLSVersion.TLSv1_2, ssl.TLSVersion.TLSv1_3)


def create_client_context(cafile=None) -> ssl.SSLContext:
    """
    Creates the context used for client connections: the platform's default trust store,
    hostname checking and only the enabled protocol versions.
    :param cafile: a PEM file of certificates trusted in addition to the platform store
    """
    context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)
    if cafile:
        context.load_verify_locations(cafile)
    context.minimum_version = min(ENABLED_PROTOCOLS)
    context.maximum_version = max(ENABLED_PROTOCOLS)
    return context


class SSLSocketConnector(SocketConnector):
    """
    A socket connector whose traffic is encrypted with TLS.

    Availability considers data decrypted and pending in the TLS layer. When there is none,
    but the socket is readable, the next record is read without blocking. If it holds
    application data, the data is held back and returned by the next read().
    """

    _failure_message = "Failed to establish SSL connection"

    def __init__(self, address, port, timeout=None, cafile=None, server_hostname=None):
        """
        Connects to the given endpoint and performs the TLS handshake.
        :param address: the host name or IP address to connect to
        :param port: the TCP port to connect to
        :param timeout: the time in seconds a blocking operation may take, None to block indefinitely
        :param cafile: a PEM file of certificates trusted in addition to the platform store
        :param server_hostname: the name sent for SNI and checked against the server certificate.
            Defaults to the address.
        :raises ConnectorError: when the connection cannot be established or secured
        """
        self._cafile = cafile
        self._server_hostname = server_hostname or address
        self._held = None
        super().__init__(address, port, timeout)

    def _open(self, address, port, timeout):
        context = create_client_context(self._cafile)
        sock = super()._open(address, port, timeout)
        try:
            ssock = context.wrap_socket(sock, server_hostname=self._server_hostname)
        except (OSError, ValueError):
            sock.close()
            raise
        logger.info("negotiated %s using %s with %s:%s" % (ssock.version(), ssock.cipher()[0], address, port))
        return ssock

    @property
    def protocol(self):
        """ the negotiated protocol version, such as 'TLSv1.3', or None when closed. """
        sock = self._sock
        return None if sock is None else sock.version()

    def _probe(self):
        sock = self._sock
        if self._held is not None:
            return len(self._held) > 0
        if sock.pending() > 0:
            return True
        readable, _, _ = select.select([sock], [], [], 0)
        if not readable:
            return False
        timeout = sock.gettimeout()
        sock.settimeout(0)
        try:
            data = sock.recv(BUFFER_SIZE)
        except (ssl.SSLWantReadError, ssl.SSLWantWriteError):
            # only handshake records, such as session tickets, have arrived
            return False
        finally:
            sock.settimeout(timeout)
        # an empty result is the end of the stream, which the next read() reports
        self._held = data
        return len(data) > 0

    def _receive(self):
        held = self._held
        if held is None:
            return self._sock.recv_into(self._buffer)
        self._held = None
        count = len(held)
        self._buffer[:count] = held
        return count

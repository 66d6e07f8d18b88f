import logging
from abc import abstractmethod

from tlsconnector.support.events import EventSource
from tlsconnector.support.mixins import CommonEqualityMixin

logger = logging.getLogger(__name__)


class ConnectorError(Exception):
    """ Indicates an error condition with a connection.
        The underlying cause, if any, is available as __cause__.
    """


class ConnectorEvent(CommonEqualityMixin):
    """ base class for connector events. """
    def __init__(self, connector):
        self.connector = connector


class ConnectorDisconnectedEvent(ConnectorEvent):
    """ The connector was closed, either by the caller or because the peer ended the stream. """


class Connector():
    """ A connector is a single-use, bi-directional byte channel to a remote endpoint. """

    def __init__(self):
        self.events = EventSource()

    @property
    @abstractmethod
    def endpoint(self):
        """ the endpoint that this connector communicates with """
        raise NotImplementedError

    @property
    @abstractmethod
    def connected(self) -> bool:
        """
        Determines if this connector is connected to its endpoint. Never raises.
        :return: False once the connector is closed, otherwise the state of the underlying transport.
        :rtype: bool
        """
        raise NotImplementedError

    @property
    @abstractmethod
    def available(self) -> bool:
        """
        Determines, without blocking, if data can be read without blocking.
        Raises ConnectorError if the connector is closed.
        :rtype: bool
        """
        raise NotImplementedError

    @abstractmethod
    def read(self):
        """
        Reads the next chunk of data, blocking until some is available.
        :return: the bytes read, or None when there is no more data.
        """
        raise NotImplementedError

    @abstractmethod
    def write(self, data):
        """
        Writes all of the given bytes-like object, blocking until it is handed to the transport.
        """
        raise NotImplementedError

    @abstractmethod
    def close(self):
        """
        Closes the connector. Raises ConnectorError if the connector is already closed.
        """
        raise NotImplementedError


class DelegateConnector(Connector):
    """
    Delegates methods to the delegate connector, unless they are overridden
    """
    def __init__(self, delegate: Connector):
        super().__init__()
        self.delegate = delegate
        self.events = delegate.events

    @property
    def endpoint(self):
        return self.delegate.endpoint

    @property
    def connected(self) -> bool:
        return self.delegate.connected

    @property
    def available(self) -> bool:
        return self.delegate.available

    def read(self):
        return self.delegate.read()

    def write(self, data):
        return self.delegate.write(data)

    def close(self):
        return self.delegate.close()


class CloseOnErrorConnector(DelegateConnector):
    """
    Detects errors reading/writing to the delegate and closes it, so that a connector with a
    failed transport is never used again.
    """

    @property
    def available(self):
        return self._close_on_error(lambda: self.delegate.available)

    def read(self):
        return self._close_on_error(self.delegate.read)

    def write(self, data):
        return self._close_on_error(lambda: self.delegate.write(data))

    def _close_on_error(self, fn):
        try:
            return fn()
        except ConnectorError:
            if self.delegate.connected:
                logger.info("closing %s after a transport error" % self.endpoint)
                try:
                    self.delegate.close()
                except ConnectorError as e:
                    logger.warning("error closing %s: %s" % (self.endpoint, e))
            raise


class ConnectorContextManager:
    """
    Provides the connector on entry, and closes it on exit if it is still open.
    """

    def __init__(self, connector: Connector):
        self.connector = connector

    def __enter__(self):
        return self.connector

    def __exit__(self, exc_type, exc_value, traceback):
        if self.connector.connected:
            logger.debug("Closing connection to %s" % self.connector.endpoint)
            self.connector.close()

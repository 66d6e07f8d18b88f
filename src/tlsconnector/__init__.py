"""

Encrypted connectors

- Connector: a single-use, bi-directional byte channel to a remote endpoint. The contract
  (connected, available, read, write, close) is shared by every transport kind so that a
  message dispatch layer can drive them polymorphically.
- SocketConnector: plain TCP. Holds the lifecycle and error translation logic.
- SSLSocketConnector: TLS over TCP, restricted to TLSv1.2 and TLSv1.3, platform trust.

All failures surface as ConnectorError, with the underlying cause chained.


Lifecycle

A connector is connected when constructed. It is closed either explicitly with close() or
implicitly when read() sees the peer close its side of the stream. A closed connector
cannot be reopened; create a new one. Closing fires a ConnectorDisconnectedEvent on the
connector's event source.


Threading

None. Each call blocks on the calling thread except the available probe. The scratch
buffer returned by read() is reused, so the data is only valid until the next read().
Callers that share a connector between threads must serialize access themselves.
A blocking read can be interrupted by closing the connector from another thread, in which
case the read returns None.

"""

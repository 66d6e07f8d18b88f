"""
Fixtures for exercising connectors against real endpoints: a throwaway certificate authority,
and threaded servers that echo or greet their clients, over TCP or TLS.

Requires the cryptography package, installed with the 'test' extra.
"""
import datetime
import ipaddress
import logging
import os
import socket
import ssl
import sys
import tempfile
import threading
import time

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

logger = logging.getLogger(__name__)


def debug_timeout(value):
    """
    Replaces the timeout value with a very large one if the tests are running under a debugger.
    This prevents the main thread from throwing an exception and exiting when the test times out
    due to a breakpoint.
    """
    return value if sys.gettrace() is None else 100000


def wait_until(condition, timeout=5, interval=0.01):
    """ polls the condition until it is true or the timeout expires. Returns the last result. """
    deadline = time.monotonic() + timeout
    result = condition()
    while not result and time.monotonic() < deadline:
        time.sleep(interval)
        result = condition()
    return result


def _key_usage(**enabled):
    flags = dict(digital_signature=False, content_commitment=False, key_encipherment=False,
                 data_encipherment=False, key_agreement=False, key_cert_sign=False, crl_sign=False,
                 encipher_only=False, decipher_only=False)
    flags.update(enabled)
    return x509.KeyUsage(**flags)


def _general_name(host):
    try:
        return x509.IPAddress(ipaddress.ip_address(host))
    except ValueError:
        return x509.DNSName(host)


class CertificateAuthority:
    """
    A self-signed certificate authority that issues server certificates.
    The certificates and keys are written as PEM files to a temporary directory.
    """

    def __init__(self, name='tlsconnector test CA', directory=None):
        self.directory = directory or tempfile.mkdtemp(prefix='tlsconnector-')
        self._key = ec.generate_private_key(ec.SECP256R1())
        self._name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, name)])
        public_key = self._key.public_key()
        self.certificate = self._builder(self._name, public_key) \
            .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True) \
            .add_extension(_key_usage(digital_signature=True, key_cert_sign=True, crl_sign=True), critical=True) \
            .add_extension(x509.SubjectKeyIdentifier.from_public_key(public_key), critical=False) \
            .sign(self._key, hashes.SHA256())
        self.cafile = self._write('ca-cert.pem', self.certificate.public_bytes(serialization.Encoding.PEM))

    def _builder(self, subject, public_key):
        now = datetime.datetime.now(datetime.timezone.utc)
        return x509.CertificateBuilder() \
            .subject_name(subject) \
            .issuer_name(self._name) \
            .public_key(public_key) \
            .serial_number(x509.random_serial_number()) \
            .not_valid_before(now - datetime.timedelta(minutes=5)) \
            .not_valid_after(now + datetime.timedelta(days=1))

    def _write(self, filename, data):
        path = os.path.join(self.directory, filename)
        with open(path, 'wb') as f:
            f.write(data)
        return path

    def issue_server_certificate(self, hostnames=('127.0.0.1', 'localhost')):
        """
        Issues a certificate valid for the given host names and IP addresses.
        :return: a (certfile, keyfile) tuple of PEM file paths
        """
        key = ec.generate_private_key(ec.SECP256R1())
        subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, hostnames[0])])
        certificate = self._builder(subject, key.public_key()) \
            .add_extension(x509.SubjectAlternativeName([_general_name(h) for h in hostnames]), critical=False) \
            .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True) \
            .add_extension(_key_usage(digital_signature=True), critical=True) \
            .add_extension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False) \
            .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False) \
            .add_extension(x509.AuthorityKeyIdentifier.from_issuer_public_key(self._key.public_key()),
                           critical=False) \
            .sign(self._key, hashes.SHA256())
        certfile = self._write('server-cert.pem', certificate.public_bytes(serialization.Encoding.PEM))
        keyfile = self._write('server-key.pem', key.private_bytes(
            serialization.Encoding.PEM, serialization.PrivateFormat.PKCS8, serialization.NoEncryption()))
        return certfile, keyfile


def server_context(certfile, keyfile, protocols=None) -> ssl.SSLContext:
    """
    Creates a server side TLS context.
    :param protocols: the TLS versions the server accepts, or None for the defaults.
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(certfile, keyfile)
    if protocols:
        context.minimum_version = min(protocols)
        context.maximum_version = max(protocols)
    return context


class EchoServer:
    """
    Accepts connections one at a time on a background thread, and echoes back everything
    received until the client closes its side of the connection.
    When a context is given, the connections are secured with TLS.
    """

    def __init__(self, host='127.0.0.1', port=0, context=None):
        self.context = context
        self.errors = []
        self._stopped = threading.Event()
        self._listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            self._listener.bind((host, port))
            self._listener.listen(5)
        except OSError:
            self._listener.close()
            raise
        self._listener.settimeout(0.1)
        self.host, self.port = self._listener.getsockname()[:2]
        self._thread = threading.Thread(target=self._serve, name='%s-%s' % (type(self).__name__, self.port))
        self._thread.daemon = True

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc_value, traceback):
        self.stop()

    def start(self):
        self._thread.start()
        return self

    def stop(self):
        self._stopped.set()
        self._thread.join(5)
        self._listener.close()

    def _serve(self):
        while not self._stopped.is_set():
            try:
                client, address = self._listener.accept()
            except socket.timeout:
                continue
            client.settimeout(5)
            try:
                if self.context is not None:
                    client = self.context.wrap_socket(client, server_side=True)
                self._converse(client)
            except OSError as e:
                logger.debug("connection from %s ended with %s" % (address, e))
                self.errors.append(e)
            finally:
                client.close()

    def _converse(self, client):
        while not self._stopped.is_set():
            data = client.recv(4096)
            if not data:
                break
            client.sendall(data)


class HelloServer(EchoServer):
    """
    Sends a greeting to each client and then closes its side of the connection.
    """
    greeting = b'hello'

    def _converse(self, client):
        client.sendall(self.greeting)
        if isinstance(client, ssl.SSLSocket):
            client.unwrap()
        else:
            client.shutdown(socket.SHUT_WR)
            client.recv(1)

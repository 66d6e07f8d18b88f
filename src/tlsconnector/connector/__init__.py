"""
The connector moves raw bytes between this process and a remote endpoint.
Framing the bytes into messages is left to the layer above; read() boundaries
carry no meaning.
"""

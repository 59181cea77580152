"""
Discovery Wire Format

Design Decision: Payload Encoding
=================================

Options:
1. JSON messages (type, node info, ports)
   - Self-describing, extensible
   - Larger, needs parsing and schema checks

2. Raw secret / single-byte acknowledgment
   - Probe is just the UTF-8 secret, no framing
   - Acknowledgment is one byte (0x01, a boolean true)
   - Trivial to validate exactly

Decision: Raw payloads
- The only question a probe asks is "are you one of us?"
- The answer needs no body: the sender address is the peer
- Exact-match validation leaves nothing to misparse

Protocol:
- PROBE: searcher -> broadcast:discovery_port, payload = secret
- ACK:   advertiser -> searcher, payload = b'\\x01'
"""

# Largest datagram we bother reading
BUFFER_SIZE = 1024

# Acknowledgment payload (boolean true)
ACK = b'\x01'


def encode_probe(secret: str) -> bytes:
    """Encode the probe payload for a secret."""
    return secret.encode('utf-8')


def decode_probe(data: bytes) -> str:
    """
    Decode a probe payload.

    Raises:
        UnicodeDecodeError: If the payload is not valid UTF-8
    """
    return data.decode('utf-8')


def is_valid_probe(data: bytes, secret: str) -> bool:
    """Check whether a datagram carries exactly our secret."""
    try:
        return decode_probe(data) == secret
    except UnicodeDecodeError:
        return False


def is_acknowledgment(data: bytes) -> bool:
    """Check whether a datagram is exactly the acknowledgment payload."""
    return data == ACK

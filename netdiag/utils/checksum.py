"""Internet checksum (RFC 1071)."""


def ones_complement_sum(data: bytes) -> int:
    """Fold 16-bit big-endian words into a 16-bit one's-complement sum.

    An odd trailing byte is padded with zero.

    Args:
        data: Bytes to sum.

    Returns:
        int: Folded sum in the range 0..0xFFFF.
    """
    if len(data) % 2:
        data += b"\x00"
    total = 0
    for i in range(0, len(data), 2):
        total += (data[i] << 8) + data[i + 1]
    while total >> 16:
        total = (total & 0xFFFF) + (total >> 16)
    return total


def internet_checksum(data: bytes) -> int:
    """Compute the Internet checksum of data.

    Args:
        data: Packet bytes with the checksum field zeroed.

    Returns:
        int: 16-bit checksum to store big-endian in the checksum field.

    Examples:
        >>> hex(internet_checksum(bytes([0x08, 0x00, 0x00, 0x00, 0x12, 0x34, 0x00, 0x01])))
        '0xe5ca'
    """
    return ~ones_complement_sum(data) & 0xFFFF

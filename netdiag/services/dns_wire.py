"""DNS wire format encoding and decoding (RFC 1035).

Builds single-question queries and decodes the answer section of replies,
following compression pointers. Decoding never reads past the supplied
buffer: a record that would overrun it ends the result list.
"""

import logging
import struct
from typing import List, Tuple, Union

from netdiag.models.dns_record import (
    DNSMessage,
    DNSRecord,
    RecordType,
    parse_record_type,
    record_type_name,
)
from netdiag.models.errors import DecodeError


logger = logging.getLogger(__name__)


HEADER_SIZE = 12
FLAG_RECURSION_DESIRED = 0x0100
CLASS_IN = 1
MAX_LABEL_LENGTH = 63
MAX_NAME_LENGTH = 255
MAX_POINTER_JUMPS = 64


def encode_name(domain: str) -> bytes:
    """Encode a domain name as length-prefixed labels.

    Args:
        domain: Dotted name; a trailing dot is accepted.

    Returns:
        bytes: Labels terminated by a zero length byte.

    Raises:
        ValueError: On empty labels, labels over 63 bytes, or names over 255 bytes.
    """
    name = domain.strip().rstrip(".")
    encoded = b""
    if name:
        for label in name.split("."):
            if not label:
                raise ValueError(f"Empty label in domain name: {domain!r}")
            try:
                raw = label.encode("ascii")
            except UnicodeEncodeError:
                raw = label.encode("idna")
            if len(raw) > MAX_LABEL_LENGTH:
                raise ValueError(f"Label longer than {MAX_LABEL_LENGTH} bytes: {label!r}")
            encoded += struct.pack("!B", len(raw)) + raw
    encoded += b"\x00"
    if len(encoded) > MAX_NAME_LENGTH:
        raise ValueError(f"Domain name longer than {MAX_NAME_LENGTH} bytes: {domain!r}")
    return encoded


def encode_query(
    domain: str, record_type: Union[str, int, RecordType], transaction_id: int
) -> bytes:
    """Build a standard recursive query with one question.

    Args:
        domain: Name to query.
        record_type: Record type name, number, or RecordType.
        transaction_id: 16-bit transaction ID.

    Returns:
        bytes: DNS query message.

    Raises:
        ValueError: If the record type is unknown or the name is invalid.

    Examples:
        >>> encode_query("example.com", "A", 0x1234).hex()
        '123401000001000000000000076578616d706c6503636f6d0000010001'
    """
    rr_type = parse_record_type(record_type)
    if rr_type is None:
        raise ValueError(f"Unknown record type: {record_type}")

    header = struct.pack(
        "!HHHHHH", transaction_id & 0xFFFF, FLAG_RECURSION_DESIRED, 1, 0, 0, 0
    )
    question = encode_name(domain) + struct.pack("!HH", int(rr_type), CLASS_IN)
    return header + question


def parse_header(data: bytes) -> DNSMessage:
    """Read the fixed 12-byte header.

    Raises:
        DecodeError: If data is shorter than a header.
    """
    if len(data) < HEADER_SIZE:
        raise DecodeError(f"Message too short for header: {len(data)} bytes")
    transaction_id, flags, qd, an, ns, ar = struct.unpack("!HHHHHH", data[:HEADER_SIZE])
    return DNSMessage(
        transaction_id=transaction_id,
        flags=flags,
        question_count=qd,
        answer_count=an,
        authority_count=ns,
        additional_count=ar,
    )


def read_name(data: bytes, offset: int) -> Tuple[str, int]:
    """Decode a possibly compressed domain name.

    A length byte with both high bits set starts a two-byte pointer holding a
    14-bit offset into the message. Labels are collected across pointers and
    the returned offset is the byte after the first pointer in the original
    stream (or after the terminating zero when no pointer was followed).

    Args:
        data: Whole DNS message.
        offset: Position of the name.

    Returns:
        Tuple[str, int]: (dotted name without trailing dot, next offset).

    Raises:
        DecodeError: If the name runs past the buffer, uses a reserved label
            type, or loops through pointers.
    """
    labels: List[str] = []
    pos = offset
    resume = None
    jumps = 0

    while True:
        if pos >= len(data):
            raise DecodeError(f"Name at offset {offset} runs past end of message")
        length = data[pos]

        if length == 0:
            pos += 1
            break

        if length & 0xC0 == 0xC0:
            if pos + 1 >= len(data):
                raise DecodeError(f"Truncated compression pointer at offset {pos}")
            pointer = ((length & 0x3F) << 8) | data[pos + 1]
            if resume is None:
                resume = pos + 2
            jumps += 1
            if jumps > MAX_POINTER_JUMPS:
                raise DecodeError(f"Compression pointer loop at offset {offset}")
            pos = pointer
            continue

        if length & 0xC0:
            raise DecodeError(f"Unsupported label type 0x{length:02x} at offset {pos}")

        pos += 1
        if pos + length > len(data):
            raise DecodeError(f"Label at offset {pos - 1} runs past end of message")
        labels.append(data[pos : pos + length].decode("utf-8", errors="replace"))
        pos += length

    return ".".join(labels), resume if resume is not None else pos


def skip_question(data: bytes, offset: int) -> int:
    """Return the offset following one question entry (name, QTYPE, QCLASS)."""
    _, offset = read_name(data, offset)
    if offset + 4 > len(data):
        raise DecodeError("Question section runs past end of message")
    return offset + 4


def _decode_txt(rdata: bytes) -> str:
    texts = []
    pos = 0
    while pos < len(rdata):
        length = rdata[pos]
        pos += 1
        if pos + length > len(rdata):
            break
        chunk = rdata[pos : pos + length]
        try:
            texts.append(chunk.decode("utf-8"))
        except UnicodeDecodeError:
            texts.append("(binary)")
        pos += length
    return '"' + '" "'.join(texts) + '"'


def decode_rdata(data: bytes, rr_type: int, rdata_offset: int, rdlength: int) -> str:
    """Render RDATA for display.

    Names inside RDATA are read from the whole message so that compression
    pointers resolve.

    Args:
        data: Whole DNS message.
        rr_type: Wire type code.
        rdata_offset: Start of RDATA.
        rdlength: RDATA length.

    Returns:
        str: Presentation value; "?" for malformed fixed-size RDATA and
            "(<n> bytes)" for types that are not interpreted.
    """
    rdata = data[rdata_offset : rdata_offset + rdlength]

    if rr_type == RecordType.A:
        if len(rdata) != 4:
            return "?"
        return ".".join(str(b) for b in rdata)

    if rr_type == RecordType.AAAA:
        if len(rdata) != 16:
            return "?"
        groups = struct.unpack("!8H", rdata)
        return ":".join(f"{g:x}" for g in groups)

    if rr_type == RecordType.MX:
        if len(rdata) < 3:
            return "?"
        (priority,) = struct.unpack("!H", rdata[:2])
        exchange, _ = read_name(data, rdata_offset + 2)
        return f"{priority} {exchange}"

    if rr_type in (RecordType.NS, RecordType.CNAME, RecordType.PTR):
        name, _ = read_name(data, rdata_offset)
        return name

    if rr_type == RecordType.TXT:
        return _decode_txt(rdata)

    if rr_type == RecordType.SOA:
        mname, next_offset = read_name(data, rdata_offset)
        rname, _ = read_name(data, next_offset)
        return f"{mname} {rname}"

    return f"({rdlength} bytes)"


def _decode_record(data: bytes, offset: int, query_domain: str) -> Tuple[DNSRecord, int]:
    name, offset = read_name(data, offset)
    if offset + 10 > len(data):
        raise DecodeError(f"Record header at offset {offset} runs past end of message")

    rr_type, _, ttl, rdlength = struct.unpack("!HHIH", data[offset : offset + 10])
    rdata_offset = offset + 10
    if rdata_offset + rdlength > len(data):
        raise DecodeError(
            f"RDLENGTH {rdlength} at offset {rdata_offset} overruns {len(data)}-byte message"
        )

    value = decode_rdata(data, rr_type, rdata_offset, rdlength)
    record = DNSRecord(
        name=name or query_domain,
        type=record_type_name(rr_type),
        ttl=ttl,
        value=value,
    )
    return record, rdata_offset + rdlength


def decode_response(data: bytes, query_domain: str) -> List[DNSRecord]:
    """Decode the answer section of a DNS response.

    Args:
        data: Response message bytes.
        query_domain: Queried name, used when an owner name is empty.

    Returns:
        List[DNSRecord]: Records decoded before the first malformed entry.
    """
    if len(data) <= HEADER_SIZE:
        return []

    header = parse_header(data)
    if header.answer_count == 0:
        return []

    offset = HEADER_SIZE
    try:
        for _ in range(header.question_count):
            offset = skip_question(data, offset)
    except DecodeError as e:
        logger.debug(f"Malformed question section: {e}")
        return []

    records: List[DNSRecord] = []
    for _ in range(header.answer_count):
        try:
            record, offset = _decode_record(data, offset, query_domain)
        except DecodeError as e:
            logger.debug(
                f"Stopping after {len(records)} of {header.answer_count} answers: {e}"
            )
            break
        records.append(record)

    return records

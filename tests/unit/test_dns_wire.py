"""Unit tests for DNS wire format encoding and decoding."""

import struct

import pytest

from netdiag.models.errors import DecodeError
from netdiag.services.dns_wire import (
    decode_response,
    encode_name,
    encode_query,
    parse_header,
    read_name,
)


POINTER_TO_QNAME = b"\xc0\x0c"


def header(answer_count, question_count=1, transaction_id=0x1234, flags=0x8180):
    return struct.pack("!HHHHHH", transaction_id, flags, question_count, answer_count, 0, 0)


def question(domain="example.com", rr_type=1):
    return encode_name(domain) + struct.pack("!HH", rr_type, 1)


def answer(rr_type, rdata, owner=POINTER_TO_QNAME, ttl=300, rdlength=None):
    if rdlength is None:
        rdlength = len(rdata)
    return owner + struct.pack("!HHIH", rr_type, 1, ttl, rdlength) + rdata


def response(*answers, rr_type=1):
    return header(len(answers)) + question(rr_type=rr_type) + b"".join(answers)


class TestEncodeQuery:
    """Test query construction."""

    def test_exact_bytes(self):
        """Test the query for example.com A with ID 0x1234."""
        expected = bytes.fromhex(
            "1234"  # ID
            "0100"  # RD
            "0001" "0000" "0000" "0000"
            "076578616d706c6503636f6d00"  # example.com
            "0001" "0001"  # A, IN
        )

        assert encode_query("example.com", "A", 0x1234) == expected

    def test_type_codes(self):
        """Test record type names map to their codes."""
        assert encode_query("example.com", "MX", 1)[-4:] == b"\x00\x0f\x00\x01"
        assert encode_query("example.com", "aaaa", 1)[-4:] == b"\x00\x1c\x00\x01"

    def test_unknown_type(self):
        """Test unknown record types are rejected."""
        with pytest.raises(ValueError, match="Unknown record type"):
            encode_query("example.com", "BOGUS", 1)


class TestEncodeName:
    """Test domain name encoding."""

    def test_trailing_dot_accepted(self):
        """Test a fully qualified name encodes like the relative one."""
        assert encode_name("example.com.") == encode_name("example.com")

    def test_root(self):
        """Test the root name is a single zero byte."""
        assert encode_name("") == b"\x00"

    def test_idna_label(self):
        """Test non-ASCII labels are IDNA encoded."""
        assert encode_name("bücher.example").startswith(b"\x0dxn--bcher-kva")

    def test_label_too_long(self):
        """Test labels over 63 bytes are rejected."""
        with pytest.raises(ValueError, match="Label longer"):
            encode_name("a" * 64 + ".com")

    def test_name_too_long(self):
        """Test names over 255 bytes are rejected."""
        with pytest.raises(ValueError, match="Domain name longer"):
            encode_name(".".join(["a" * 63] * 4))

    def test_empty_label(self):
        """Test consecutive dots are rejected."""
        with pytest.raises(ValueError, match="Empty label"):
            encode_name("a..b")


class TestReadName:
    """Test name decoding with compression."""

    def test_pointer_resumes_after_first_pointer(self):
        """Test labels followed by a pointer decode to the full name."""
        data = header(0) + question()
        name_offset = len(data)
        data += b"\x03www" + POINTER_TO_QNAME + b"\xff\xff"

        name, next_offset = read_name(data, name_offset)

        assert name == "www.example.com"
        assert next_offset == name_offset + 6

    def test_nested_pointers(self):
        """Test a pointer to a name that itself ends in a pointer."""
        data = header(0) + question()
        first = len(data)
        data += b"\x04mail" + POINTER_TO_QNAME
        second = len(data)
        data += b"\x02eu" + struct.pack("!H", 0xC000 | first)

        name, next_offset = read_name(data, second)

        assert name == "eu.mail.example.com"
        assert next_offset == second + 5

    def test_uncompressed(self):
        """Test offset after the terminating zero without pointers."""
        data = header(0) + question()

        assert read_name(data, 12) == ("example.com", 12 + 13)

    def test_pointer_loop(self):
        """Test a self-referencing pointer raises DecodeError."""
        data = header(0, question_count=0) + POINTER_TO_QNAME

        with pytest.raises(DecodeError, match="loop"):
            read_name(data, 12)

    def test_runs_past_end(self):
        """Test labels extending past the buffer raise DecodeError."""
        data = header(0, question_count=0) + b"\x07exam"

        with pytest.raises(DecodeError):
            read_name(data, 12)

    def test_reserved_label_type(self):
        """Test 0x40 and 0x80 label types are rejected."""
        data = header(0, question_count=0) + b"\x41abc\x00"

        with pytest.raises(DecodeError, match="Unsupported label type"):
            read_name(data, 12)


def test_parse_header():
    """Test header fields and flag helpers."""
    message = parse_header(header(2, flags=0x8383))

    assert message.transaction_id == 0x1234
    assert message.answer_count == 2
    assert message.is_response is True
    assert message.truncated is True
    assert message.rcode == 3


def test_parse_header_too_short():
    """Test short messages raise DecodeError."""
    with pytest.raises(DecodeError):
        parse_header(b"\x12\x34")


class TestDecodeResponse:
    """Test answer section decoding."""

    def test_a_record(self):
        """Test a single A answer."""
        records = decode_response(
            response(answer(1, bytes([93, 184, 216, 34]))), "example.com"
        )

        assert len(records) == 1
        assert records[0].name == "example.com"
        assert records[0].type == "A"
        assert records[0].ttl == 300
        assert records[0].value == "93.184.216.34"

    def test_aaaa_record(self):
        """Test AAAA values are eight lower-case hex groups."""
        rdata = bytes.fromhex("20010db8000000000000000000000001")

        records = decode_response(response(answer(28, rdata), rr_type=28), "example.com")

        assert records[0].type == "AAAA"
        assert records[0].value == "2001:db8:0:0:0:0:0:1"

    def test_mx_record_with_compressed_exchange(self):
        """Test MX priority and exchange name through a pointer."""
        rdata = struct.pack("!H", 10) + b"\x04mail" + POINTER_TO_QNAME

        records = decode_response(response(answer(15, rdata), rr_type=15), "example.com")

        assert records[0].value == "10 mail.example.com"

    def test_txt_record(self):
        """Test TXT strings are quoted and joined."""
        rdata = b"\x0bv=spf1 -all\x05hello"

        records = decode_response(response(answer(16, rdata), rr_type=16), "example.com")

        assert records[0].value == '"v=spf1 -all" "hello"'

    def test_soa_record(self):
        """Test SOA renders primary server and responsible mailbox."""
        rdata = (
            b"\x03ns1" + POINTER_TO_QNAME
            + b"\x0ahostmaster" + POINTER_TO_QNAME
            + struct.pack("!IIIII", 2024010101, 7200, 3600, 1209600, 300)
        )

        records = decode_response(response(answer(6, rdata), rr_type=6), "example.com")

        assert records[0].value == "ns1.example.com hostmaster.example.com"

    def test_cname_chain(self):
        """Test CNAME intermediates are kept in answer order."""
        cname = answer(5, b"\x03web" + POINTER_TO_QNAME)
        # Owner of the A record points at the CNAME target name
        web_offset = len(header(2) + question()) + 2 + 10
        target = answer(1, bytes([192, 0, 2, 10]), owner=struct.pack("!H", 0xC000 | web_offset))

        records = decode_response(response(cname, target), "example.com")

        assert [r.type for r in records] == ["CNAME", "A"]
        assert records[0].value == "web.example.com"
        assert records[1].value == "192.0.2.10"
        assert records[1].name == "web.example.com"

    def test_unknown_type(self):
        """Test unknown types report their code and RDATA size."""
        records = decode_response(response(answer(99, b"abc")), "example.com")

        assert records[0].type == "TYPE99"
        assert records[0].value == "(3 bytes)"

    def test_malformed_fixed_size_rdata(self):
        """Test an A record with three bytes renders as ?."""
        records = decode_response(response(answer(1, b"\x01\x02\x03")), "example.com")

        assert records[0].value == "?"

    def test_overrunning_rdlength_truncates(self):
        """Test a record whose RDLENGTH overruns the buffer ends the list."""
        good = answer(1, bytes([192, 0, 2, 1]))
        bad = answer(1, bytes([192, 0, 2, 2]), rdlength=200)

        records = decode_response(response(good, bad), "example.com")

        assert [r.value for r in records] == ["192.0.2.1"]

    def test_missing_answers_truncate(self):
        """Test ANCOUNT larger than the records present."""
        data = header(3) + question() + answer(1, bytes([192, 0, 2, 1]))

        assert len(decode_response(data, "example.com")) == 1

    def test_empty_owner_uses_query_domain(self):
        """Test a root owner name falls back to the queried domain."""
        records = decode_response(
            response(answer(1, bytes([192, 0, 2, 1]), owner=b"\x00")), "example.com"
        )

        assert records[0].name == "example.com"

    def test_large_ttl(self):
        """Test TTL is read as unsigned 32-bit."""
        records = decode_response(
            response(answer(1, bytes([192, 0, 2, 1]), ttl=0xFFFFFFFF)), "example.com"
        )

        assert records[0].ttl == 4294967295

    def test_header_only(self):
        """Test messages without a body decode to nothing."""
        assert decode_response(header(1), "example.com") == []
        assert decode_response(b"", "example.com") == []

    def test_no_answers(self):
        """Test ANCOUNT zero decodes to nothing."""
        assert decode_response(header(0) + question(), "example.com") == []

    def test_truncated_question(self):
        """Test a cut question section decodes to nothing."""
        data = header(1) + encode_name("example.com")

        assert decode_response(data, "example.com") == []


ROUND_TRIP_DOMAINS = [
    "localhost",
    "example.com",
    "mail.example.co.uk.",
    "a.b.c.d.e.f.g.example.org",
    ("x" * 63) + ".example.net",
]

ROUND_TRIP_RDATA = {
    "A": (bytes([192, 0, 2, 1]), lambda domain: "192.0.2.1"),
    "AAAA": (
        bytes.fromhex("20010db8000000000000000000000001"),
        lambda domain: "2001:db8:0:0:0:0:0:1",
    ),
    "MX": (b"\x00\x0a" + POINTER_TO_QNAME, lambda domain: f"10 {domain}"),
    "NS": (POINTER_TO_QNAME, lambda domain: domain),
    "CNAME": (POINTER_TO_QNAME, lambda domain: domain),
    "PTR": (POINTER_TO_QNAME, lambda domain: domain),
    "TXT": (b"\x05hello", lambda domain: '"hello"'),
    "SOA": (
        POINTER_TO_QNAME + POINTER_TO_QNAME + bytes(20),
        lambda domain: f"{domain} {domain}",
    ),
}


@pytest.mark.parametrize("domain", ROUND_TRIP_DOMAINS)
@pytest.mark.parametrize("record_type", list(ROUND_TRIP_RDATA))
def test_answer_to_encoded_query_decodes(domain, record_type):
    """Test an answer appended to an encoded query keeps owner name and type."""
    rdata, expected_value = ROUND_TRIP_RDATA[record_type]
    query = encode_query(domain, record_type, 0xBEEF)
    data = (
        header(1, transaction_id=0xBEEF)
        + query[12:]
        + answer(struct.unpack("!H", query[-4:-2])[0], rdata, ttl=3600)
    )

    records = decode_response(data, domain)

    name = domain.rstrip(".")
    assert parse_header(data).transaction_id == 0xBEEF
    assert len(records) == 1
    assert records[0].name == name
    assert records[0].type == record_type
    assert records[0].ttl == 3600
    assert records[0].value == expected_value(name)

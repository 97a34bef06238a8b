"""DNS record and message models."""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Union


class RecordType(IntEnum):
    """DNS resource record types understood by the resolver."""

    A = 1
    NS = 2
    CNAME = 5
    SOA = 6
    PTR = 12
    MX = 15
    TXT = 16
    AAAA = 28
    ANY = 255


def parse_record_type(value: Union[str, int, RecordType]) -> Optional[RecordType]:
    """Map a record type name or number to RecordType.

    Args:
        value: Name such as "MX" (case-insensitive), number, or RecordType.

    Returns:
        Optional[RecordType]: Matching type, None if unknown.
    """
    if isinstance(value, RecordType):
        return value
    if isinstance(value, int):
        try:
            return RecordType(value)
        except ValueError:
            return None
    try:
        return RecordType[value.strip().upper()]
    except KeyError:
        return None


def record_type_name(rr_type: int) -> str:
    """Return the mnemonic for a wire type code, TYPE<n> for unknown ones."""
    try:
        return RecordType(rr_type).name
    except ValueError:
        return f"TYPE{rr_type}"


@dataclass(frozen=True)
class DNSRecord:
    """One decoded resource record.

    Attributes:
        name: Owner name.
        type: Type mnemonic (A, AAAA, MX, ..., or TYPE<n>).
        ttl: Time to live in seconds (uint32).
        value: Type-specific presentation of the RDATA.
    """

    name: str
    type: str
    ttl: int
    value: str

    def to_json(self) -> dict:
        return {
            "name": self.name,
            "type": self.type,
            "ttl": self.ttl,
            "value": self.value,
        }


@dataclass
class DNSMessage:
    """Header fields of a DNS message.

    Only exists for the duration of one encode/decode cycle.
    """

    transaction_id: int
    flags: int
    question_count: int
    answer_count: int
    authority_count: int = 0
    additional_count: int = 0

    @property
    def is_response(self) -> bool:
        return bool(self.flags & 0x8000)

    @property
    def truncated(self) -> bool:
        return bool(self.flags & 0x0200)

    @property
    def rcode(self) -> int:
        return self.flags & 0x000F

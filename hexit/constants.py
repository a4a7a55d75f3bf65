"""
Hexit Constants: the built-in table of named protocol values

A named constant is an identifier such as TCP_SYN or DNS_AAAA that stands
for a fixed number taken from an IANA registry or a file format spec. The
table is built once at import time and is read-only from then on, so any
number of evaluations can share it.

Usage:
    table = ConstantsTable.builtin_set()
    table.lookup("IP_UDP")       # Constant(value=17, width=1)
    table.lookup("NOPE_NOPE")    # None
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterator, Mapping, Optional


@dataclass(frozen=True)
class Constant:
    """A constant's value and its natural width in bytes (1 or 2)."""
    value: int
    width: int = 1

    def __repr__(self) -> str:
        return f"<Constant {self.value} ({self.width * 8}-bit)>"


def _eight(value: int) -> Constant:
    return Constant(value, 1)


def _sixteen(value: int) -> Constant:
    return Constant(value, 2)


# ============================================================================
# Built-in data
# ============================================================================

_BUILTIN: dict[str, Constant] = {
    # BGP message types
    # https://www.iana.org/assignments/bgp-parameters/bgp-parameters.xhtml
    "BGP_OPEN":          _eight(1),
    "BGP_UPDATE":        _eight(2),
    "BGP_NOTIFICATION":  _eight(3),
    "BGP_KEEPALIVE":     _eight(4),
    "BGP_ROUTE_REFRESH": _eight(5),

    # DNS classes
    # https://www.iana.org/assignments/dns-parameters/dns-parameters.xhtml
    "DNS_IN": _sixteen(1),
    "DNS_CH": _sixteen(3),
    "DNS_HS": _sixteen(4),

    # DNS record types
    "DNS_A":          _sixteen(1),
    "DNS_NS":         _sixteen(2),
    "DNS_CNAME":      _sixteen(5),
    "DNS_SOA":        _sixteen(6),
    "DNS_PTR":        _sixteen(12),
    "DNS_HINFO":      _sixteen(13),
    "DNS_MINFO":      _sixteen(14),
    "DNS_MX":         _sixteen(15),
    "DNS_TXT":        _sixteen(16),
    "DNS_GPOS":       _sixteen(27),
    "DNS_AAAA":       _sixteen(28),
    "DNS_LOC":        _sixteen(29),
    "DNS_SRV":        _sixteen(33),
    "DNS_NAPTR":      _sixteen(35),
    "DNS_OPT":        _sixteen(41),
    "DNS_SSHFP":      _sixteen(44),
    "DNS_IPSECKEY":   _sixteen(45),
    "DNS_TLSA":       _sixteen(52),
    "DNS_OPENPGPKEY": _sixteen(61),
    "DNS_EUI48":      _sixteen(108),
    "DNS_EUI64":      _sixteen(109),
    "DNS_ANY":        _sixteen(255),
    "DNS_URI":        _sixteen(256),
    "DNS_CAA":        _sixteen(257),

    # EtherTypes
    # https://www.iana.org/assignments/ieee-802-numbers/ieee-802-numbers.xhtml
    "ETHERTYPE_IPv4":        _sixteen(0x0800),
    "ETHERTYPE_ARP":         _sixteen(0x0806),
    "ETHERTYPE_WAKE_ON_LAN": _sixteen(0x0842),
    "ETHERTYPE_IPV6":        _sixteen(0x86DD),

    # Gzip compression methods, compression flags, flags and OSes
    # http://www.gzip.org/format.txt
    "GZIP_DEFLATE":  _eight(0x08),
    "GZIP_SLOWEST":  _eight(0x02),
    "GZIP_FASTEST":  _eight(0x04),
    "GZIP_FTEXT":    _eight(0x01),
    "GZIP_FHCRC":    _eight(0x02),
    "GZIP_FEXTRA":   _eight(0x04),
    "GZIP_FNAME":    _eight(0x08),
    "GZIP_FCOMMENT": _eight(0x10),
    "GZIP_FAT":      _eight(0),
    "GZIP_UNIX":     _eight(3),
    "GZIP_NT":       _eight(11),

    # ICMP message types
    # https://www.iana.org/assignments/icmp-parameters/icmp-parameters.xhtml
    "ICMP_ECHO_REPLY":              _eight(0),
    "ICMP_DESTINATION_UNREACHABLE": _eight(3),
    "ICMP_REDIRECT":                _eight(5),
    "ICMP_ECHO":                    _eight(8),
    "ICMP_ROUTER_ADVERTISEMENT":    _eight(9),
    "ICMP_ROUTER_SOLICITATION":     _eight(10),
    "ICMP_TIME_EXCEEDED":           _eight(11),
    "ICMP_PARAMETER_PROBLEM":       _eight(12),
    "ICMP_TIMESTAMP_REQUEST":       _eight(13),
    "ICMP_TIMESTAMP_REPLY":         _eight(14),
    "ICMP_ADDRESS_MASK_REQUEST":    _eight(17),
    "ICMP_ADDRESS_MASK_REPLY":      _eight(18),

    # IP protocols [/etc/protocols]
    # https://www.iana.org/assignments/protocol-numbers/protocol-numbers.xhtml
    "IP_ICMP": _eight(1),
    "IP_IGMP": _eight(2),
    "IP_TCP":  _eight(6),
    "IP_UDP":  _eight(17),
    "IP_SCTP": _eight(132),

    # TCP flags
    # https://www.iana.org/assignments/tcp-parameters/tcp-parameters.xhtml
    "TCP_FIN": _sixteen(0x0001),
    "TCP_SYN": _sixteen(0x0002),
    "TCP_RST": _sixteen(0x0004),
    "TCP_PSH": _sixteen(0x0008),
    "TCP_ACK": _sixteen(0x0010),
    "TCP_URG": _sixteen(0x0020),
    "TCP_ECN": _sixteen(0x0040),
    "TCP_CWR": _sixteen(0x0080),
}


# ============================================================================
# Table
# ============================================================================

class ConstantsTable:
    """Read-only mapping of constant names to their values."""

    def __init__(self, entries: Mapping[str, Constant]) -> None:
        self._map: Mapping[str, Constant] = MappingProxyType(dict(sorted(entries.items())))

    @classmethod
    def builtin_set(cls) -> ConstantsTable:
        """The shared table of every built-in constant."""
        return BUILTIN_CONSTANTS

    @classmethod
    def empty(cls) -> ConstantsTable:
        return cls({})

    def lookup(self, name: str) -> Optional[Constant]:
        """Look up a constant by name, returning None if there is no such constant."""
        return self._map.get(name)

    def all(self) -> Iterator[tuple[str, Constant]]:
        """Yield every (name, constant) pair in name order."""
        yield from self._map.items()

    def __contains__(self, name: object) -> bool:
        return name in self._map

    def __len__(self) -> int:
        return len(self._map)

    def __repr__(self) -> str:
        return f"<ConstantsTable: {len(self._map)} constants>"


BUILTIN_CONSTANTS = ConstantsTable(_BUILTIN)

# Copyright The Koukan Authors
# SPDX-License-Identifier: Apache-2.0
from enum import Enum
from typing import (
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
    Tuple )
import re

from rrt.address import Domain, MailAddress
from rrt.errors import InvalidArgumentException

class PayloadKind(Enum):
    ADDRESS = 1
    DOMAIN = 2
    REGEX = 3
    TEXT = 4

class MappingType(Enum):
    Address = 'Address'
    Regex = 'Regex'
    Error = 'Error'
    Domain = 'Domain'
    DomainAlias = 'DomainAlias'
    Forward = 'Forward'
    Group = 'Group'
    Alias = 'Alias'

    @property
    def prefix(self) -> str:
        return _PREFIX[self]

    @property
    def payload_kind(self) -> PayloadKind:
        return _PAYLOAD_KIND[self]

    # "mail to source also goes to payload", shares the loop-detection graph
    @property
    def redirecting(self) -> bool:
        return self in _REDIRECTING

    # mapping type that may not coexist with this one on a source
    @property
    def conflicting_type(self) -> Optional['MappingType']:
        return _CONFLICTING.get(self, None)

    # Domain and DomainAlias rewrite the domain part and are applied first
    # during resolution
    @property
    def domain_rewrite(self) -> bool:
        return self.payload_kind == PayloadKind.DOMAIN

    @staticmethod
    def from_str(s : str) -> 'MappingType':
        for t in MappingType:
            if t.value.lower() == s.lower():
                return t
        raise InvalidArgumentException('Unknown mapping type: %s' % s)

_PREFIX = {
    MappingType.Address: '',
    MappingType.Regex: 'regex:',
    MappingType.Error: 'error:',
    MappingType.Domain: 'domain:',
    MappingType.DomainAlias: 'domainAlias:',
    MappingType.Forward: 'forward:',
    MappingType.Group: 'group:',
    MappingType.Alias: 'alias:',
}

_PAYLOAD_KIND = {
    MappingType.Address: PayloadKind.ADDRESS,
    MappingType.Regex: PayloadKind.REGEX,
    MappingType.Error: PayloadKind.TEXT,
    MappingType.Domain: PayloadKind.DOMAIN,
    MappingType.DomainAlias: PayloadKind.DOMAIN,
    MappingType.Forward: PayloadKind.ADDRESS,
    MappingType.Group: PayloadKind.ADDRESS,
    MappingType.Alias: PayloadKind.ADDRESS,
}

_REDIRECTING = frozenset([
    MappingType.Address,
    MappingType.Alias,
    MappingType.Forward,
    MappingType.Group ])

_CONFLICTING = {
    MappingType.Alias: MappingType.Group,
    MappingType.Group: MappingType.Alias,
}

assert set(_PREFIX) == set(MappingType)
assert set(_PAYLOAD_KIND) == set(MappingType)


# Regex payloads are "pattern:replacement". The pattern may itself
# contain ':' as in "(?:" or "(?i:" so the split is at the rightmost ':'
# whose left side compiles. Without one the whole payload is a bare
# pattern with no replacement. Raises re.error if that doesn't compile
# either.
def split_regex_payload(payload : str
                        ) -> Tuple[re.Pattern, Optional[str]]:
    colon = len(payload)
    while (colon := payload.rfind(':', 0, colon)) != -1:
        try:
            return re.compile(payload[0:colon]), payload[colon+1:]
        except re.error:
            continue
    return re.compile(payload), None


class Mapping:
    type : MappingType
    payload : str

    def __init__(self, mapping_type : MappingType, payload : str):
        self.type = mapping_type
        self.payload = payload

    @staticmethod
    def address(payload : str) -> 'Mapping':
        return Mapping(MappingType.Address, payload)

    @staticmethod
    def regex(payload : str) -> 'Mapping':
        return Mapping(MappingType.Regex, payload)

    @staticmethod
    def error(payload : str) -> 'Mapping':
        return Mapping(MappingType.Error, payload)

    @staticmethod
    def domain(domain : Domain) -> 'Mapping':
        return Mapping(MappingType.Domain, domain.as_string())

    @staticmethod
    def domain_alias(domain : Domain) -> 'Mapping':
        return Mapping(MappingType.DomainAlias, domain.as_string())

    @staticmethod
    def forward(payload : str) -> 'Mapping':
        return Mapping(MappingType.Forward, payload)

    @staticmethod
    def group(payload : str) -> 'Mapping':
        return Mapping(MappingType.Group, payload)

    @staticmethod
    def alias(payload : str) -> 'Mapping':
        return Mapping(MappingType.Alias, payload)

    # inverse of as_string(); strings without a known prefix are addresses
    @staticmethod
    def parse(s : str) -> 'Mapping':
        for t in MappingType:
            if t.prefix and s.startswith(t.prefix):
                return Mapping(t, s[len(t.prefix):])
        return Mapping(MappingType.Address, s)

    def as_string(self) -> str:
        return self.type.prefix + self.payload

    def as_mail_address(self) -> Optional[MailAddress]:
        if self.type.payload_kind != PayloadKind.ADDRESS:
            return None
        return MailAddress.parse(self.payload)

    def as_source(self) -> Optional['MappingSource']:
        if (addr := self.as_mail_address()) is None:
            return None
        return MappingSource.from_mail_address(addr)

    def with_payload(self, payload : str) -> 'Mapping':
        return Mapping(self.type, payload)

    def to_json(self) -> Dict[str, str]:
        return {'type': self.type.value, 'mapping': self.payload}

    def __str__(self):
        return self.as_string()

    def __repr__(self):
        return 'Mapping(%s, %s)' % (self.type.value, self.payload)

    def __eq__(self, rhs):
        if not isinstance(rhs, Mapping):
            return False
        return self.type == rhs.type and self.payload == rhs.payload

    def __hash__(self):
        return hash((self.type, self.payload))


class MappingSource:
    domain : Domain
    local_part : Optional[str] = None  # None -> whole domain

    WILDCARD = '*'

    def __init__(self, domain : Domain, local_part : Optional[str] = None):
        assert domain is not None
        self.domain = domain
        self.local_part = local_part

    @staticmethod
    def from_domain(domain : Domain) -> 'MappingSource':
        return MappingSource(domain)

    @staticmethod
    def from_user(local_part : str, domain : Domain) -> 'MappingSource':
        if not local_part:
            raise InvalidArgumentException('empty local part')
        if local_part == MappingSource.WILDCARD:
            return MappingSource(domain)
        return MappingSource(domain, local_part)

    @staticmethod
    def from_mail_address(addr : MailAddress) -> 'MappingSource':
        return MappingSource.from_user(addr.local_part, addr.domain)

    # "alice@example.com", "*@example.com", "example.com"
    @staticmethod
    def parse(s : str) -> 'MappingSource':
        if not isinstance(s, str) or not s:
            raise InvalidArgumentException('empty mapping source')
        at = s.rfind('@')
        if at == -1:
            return MappingSource.from_domain(Domain.of(s))
        local_part = s[0:at]
        if local_part == MappingSource.WILDCARD:
            return MappingSource.from_domain(Domain.of(s[at+1:]))
        return MappingSource.from_mail_address(MailAddress.parse(s))

    def is_domain(self) -> bool:
        return self.local_part is None

    def mail_address(self) -> Optional[MailAddress]:
        if self.local_part is None:
            return None
        return MailAddress(self.local_part, self.domain)

    def as_string(self) -> str:
        if (addr := self.mail_address()) is None:
            return self.domain.as_string()
        return addr.as_string()

    def __str__(self):
        return self.as_string()

    def __repr__(self):
        return 'MappingSource(%s)' % self.as_string()

    def __eq__(self, rhs):
        if not isinstance(rhs, MappingSource):
            return False
        return (self.domain == rhs.domain and
                self.local_part == rhs.local_part)

    def __hash__(self):
        return hash((self.domain, self.local_part))

    def __lt__(self, rhs):
        return self.as_string() < rhs.as_string()


class Mappings:
    _mappings : Dict[Mapping, None]  # insertion-ordered set

    def __init__(self, mappings : Iterable[Mapping] = ()):
        self._mappings = {}
        for m in mappings:
            self._mappings[m] = None

    def add(self, mapping : Mapping) -> bool:
        if mapping in self._mappings:
            return False
        self._mappings[mapping] = None
        return True

    def remove(self, mapping : Mapping) -> bool:
        if mapping not in self._mappings:
            return False
        del self._mappings[mapping]
        return True

    def select(self, *types : MappingType) -> 'Mappings':
        return Mappings(m for m in self._mappings if m.type in types)

    def contains(self, mapping_type : MappingType) -> bool:
        return any(m.type == mapping_type for m in self._mappings)

    def copy(self) -> 'Mappings':
        return Mappings(self._mappings)

    def as_strings(self) -> List[str]:
        return [m.as_string() for m in self._mappings]

    def to_json(self) -> List[Dict[str, str]]:
        return [m.to_json() for m in self._mappings]

    def is_empty(self) -> bool:
        return not self._mappings

    def __iter__(self) -> Iterator[Mapping]:
        return iter(list(self._mappings))

    def __len__(self):
        return len(self._mappings)

    def __contains__(self, mapping):
        return mapping in self._mappings

    def __bool__(self):
        return bool(self._mappings)

    # order-insensitive
    def __eq__(self, rhs):
        if not isinstance(rhs, Mappings):
            return False
        return set(self._mappings) == set(rhs._mappings)

    def __str__(self):
        return ', '.join(self.as_strings())

    def __repr__(self):
        return 'Mappings(%s)' % str(self)

# Copyright The Koukan Authors
# SPDX-License-Identifier: Apache-2.0
from email import _header_value_parser
from email.errors import HeaderParseError
import re

from rrt.errors import InvalidArgumentException

MAX_DOMAIN_LENGTH = 253

_LABEL_RE = re.compile(r'^[a-z0-9_]([a-z0-9_-]*[a-z0-9_])?$')

# RFC 5322 dot-atom, anything else goes out as a quoted-string
_ATEXT = r"[A-Za-z0-9!#$%&'*+/=?^_`{|}~\u0080-\U0010ffff-]+"
_DOT_ATOM_RE = re.compile(r'%s(\.%s)*' % (_ATEXT, _ATEXT))


class Domain:
    name : str

    def __init__(self, name : str):
        self.name = name

    @staticmethod
    def of(name : str) -> 'Domain':
        if not isinstance(name, str) or not name:
            raise InvalidArgumentException('Domain can not be empty')
        if not name.isascii():
            raise InvalidArgumentException(
                'Domain parts ASCII chars must be a-z A-Z 0-9 - or _')
        if len(name) > MAX_DOMAIN_LENGTH:
            raise InvalidArgumentException(
                'Domain name length should not exceed %d characters' %
                MAX_DOMAIN_LENGTH)
        lower = name.lower()
        for label in lower.split('.'):
            if not _LABEL_RE.match(label):
                raise InvalidArgumentException(
                    'Domain parts ASCII chars must be a-z A-Z 0-9 - or _: '
                    + name)
        return Domain(lower)

    def as_string(self) -> str:
        return self.name

    def __str__(self):
        return self.name

    def __repr__(self):
        return 'Domain(%s)' % self.name

    def __eq__(self, rhs):
        if not isinstance(rhs, Domain):
            return False
        return self.name == rhs.name

    def __hash__(self):
        return hash(self.name)

    def __lt__(self, rhs):
        return self.name < rhs.name

LOCALHOST = Domain('localhost')


class MailAddress:
    local_part : str
    domain : Domain

    def __init__(self, local_part : str, domain : Domain):
        self.local_part = local_part
        self.domain = domain

    @staticmethod
    def parse(addr : str) -> 'MailAddress':
        if not isinstance(addr, str) or '@' not in addr:
            raise InvalidArgumentException('Invalid mail address: %s' % addr)
        try:
            spec = _header_value_parser.get_addr_spec(addr)
        except HeaderParseError as e:
            raise InvalidArgumentException(
                'Invalid mail address: %s' % addr) from e
        if spec[1] or spec[0].all_defects:
            raise InvalidArgumentException('Invalid mail address: %s' % addr)
        local_part = spec[0].local_part
        if not local_part or spec[0].domain is None:
            raise InvalidArgumentException('Invalid mail address: %s' % addr)
        return MailAddress(local_part, Domain.of(spec[0].domain))

    def as_string(self) -> str:
        if _DOT_ATOM_RE.fullmatch(self.local_part):
            return '%s@%s' % (self.local_part, self.domain.name)
        quoted = self.local_part.replace('\\', '\\\\').replace('"', '\\"')
        return '"%s"@%s' % (quoted, self.domain.name)

    def __str__(self):
        return self.as_string()

    def __repr__(self):
        return 'MailAddress(%s)' % self.as_string()

    def __eq__(self, rhs):
        if not isinstance(rhs, MailAddress):
            return False
        return (self.local_part == rhs.local_part and
                self.domain == rhs.domain)

    def __hash__(self):
        return hash((self.local_part, self.domain))


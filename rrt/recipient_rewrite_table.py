# Copyright The Koukan Authors
# SPDX-License-Identifier: Apache-2.0
from typing import (
    AbstractSet,
    Dict,
    Iterable,
    List,
    Optional )
import logging
import re

from rrt.address import Domain, MailAddress
from rrt.backoff import backoff
from rrt.conflict_detector import ConflictDetector
from rrt.domain_list import DomainList
from rrt.errors import (
    ErrorMappingException,
    InvalidArgumentException,
    LoopDetectedException,
    RecipientRewriteTableException )
from rrt.loop_detector import LoopDetector
from rrt.mapping import (
    Mapping,
    Mappings,
    MappingSource,
    MappingType,
    PayloadKind,
    split_regex_payload )
from rrt.mapping_store import MappingStore, VersionConflictException
from rrt.response import Response
from rrt.user_entity_validator import (
    DefaultUserEntityValidator,
    UserEntityValidator )
from rrt.users_repository import UsersRepository
from rrt.validators import (
    DomainMembershipCheck,
    DomainSourceCheck,
    ExistingUserCheck,
    MappingCheck,
    RegexSyntaxCheck,
    SameSourceDestinationCheck )

TOO_MANY_MAPPINGS = Response(554, 'Too many mappings to process')

class RecipientRewriteTableConfiguration:
    recursive : bool
    mapping_limit : int

    def __init__(self, recursive : bool = True, mapping_limit : int = 10):
        if recursive and mapping_limit < 1:
            raise InvalidArgumentException(
                'mapping_limit must be at least 1 when recursive')
        self.recursive = recursive
        self.mapping_limit = mapping_limit

    @staticmethod
    def from_yaml(yaml : dict) -> 'RecipientRewriteTableConfiguration':
        return RecipientRewriteTableConfiguration(
            recursive = yaml.get('recursive_mapping', True),
            mapping_limit = yaml.get('mapping_limit', 10))


class RecipientRewriteTable:
    store : MappingStore
    domain_list : DomainList
    users_repository : UsersRepository
    configuration : RecipientRewriteTableConfiguration
    loop_detector : LoopDetector
    conflict_detector : ConflictDetector
    checks : Dict[MappingType, List[MappingCheck]]
    max_write_attempts : int

    def __init__(
            self, store : MappingStore,
            domain_list : DomainList,
            users_repository : UsersRepository,
            configuration : Optional[RecipientRewriteTableConfiguration] = None,
            user_validator : Optional[UserEntityValidator] = None,
            max_write_attempts : int = 5):
        self.store = store
        self.domain_list = domain_list
        self.users_repository = users_repository
        self.configuration = (configuration if configuration is not None
                              else RecipientRewriteTableConfiguration())
        if user_validator is None:
            user_validator = DefaultUserEntityValidator(users_repository)
        self.loop_detector = LoopDetector(store)
        self.conflict_detector = ConflictDetector(store, user_validator)
        self.max_write_attempts = max_write_attempts

        domain = DomainMembershipCheck(domain_list)
        same = SameSourceDestinationCheck()
        regex = RegexSyntaxCheck()
        user = ExistingUserCheck(users_repository)
        domain_source = DomainSourceCheck()
        # first failure wins
        self.checks = {
            MappingType.Address: [domain, same],
            MappingType.Regex: [regex, domain],
            MappingType.Error: [domain],
            MappingType.Domain: [domain],
            MappingType.DomainAlias: [domain, domain_source, same],
            MappingType.Forward: [domain, user],
            MappingType.Group: [domain],
            MappingType.Alias: [domain],
        }
        assert set(self.checks) == set(MappingType)

    # Canonical payload: address types get the default domain if they
    # don't have one, domains are lowercased.
    def _normalize(self, mapping : Mapping) -> Mapping:
        kind = mapping.type.payload_kind
        if kind == PayloadKind.ADDRESS:
            payload = mapping.payload
            if '@' not in payload:
                payload += '@' + self.domain_list.get_default_domain().as_string()
            return mapping.with_payload(MailAddress.parse(payload).as_string())
        elif kind == PayloadKind.DOMAIN:
            return mapping.with_payload(Domain.of(mapping.payload).as_string())
        return mapping

    # -> False if the mapping was already present
    def add_mapping(self, source : MappingSource, mapping : Mapping) -> bool:
        mapping = self._normalize(mapping)
        for i in range(0, self.max_write_attempts):
            backoff(i)
            try:
                return self._add_mapping(source, mapping)
            except VersionConflictException:
                logging.debug('RecipientRewriteTable.add_mapping %s %s '
                              'version conflict attempt %d',
                              source, mapping, i)
        raise RecipientRewriteTableException(
            'Too many concurrent updates, could not add %s to %s' % (
                mapping.as_string(), source.as_string()))

    def _add_mapping(self, source : MappingSource, mapping : Mapping) -> bool:
        version = self.store.version()

        for check in self.checks[mapping.type]:
            check.check(source, mapping)

        if loop := self.loop_detector.would_create_loop(
                source, mapping.type, mapping.payload):
            logging.info('RecipientRewriteTable %s -> %s loop %s',
                         source, mapping, loop)
            raise LoopDetectedException(
                'Creation of redirection of %s to %s would lead to a loop, '
                'operation not performed' % (
                    source.as_string(), mapping.as_string()))

        self.conflict_detector.check(source, mapping)

        created = self.store.add(source, mapping, expected_version=version)
        if created:
            logging.info('Add mapping %s for %s', mapping, source)
        else:
            logging.debug('Mapping %s for %s already exists', mapping, source)
        return created

    # -> False if the mapping wasn't present
    def remove_mapping(self, source : MappingSource, mapping : Mapping
                       ) -> bool:
        mapping = self._normalize(mapping)
        removed = self.store.remove(source, mapping)
        logging.info('Remove mapping %s for %s removed=%s',
                     mapping, source, removed)
        return removed

    def add_address_mapping(self, source : MappingSource, address : str
                            ) -> bool:
        return self.add_mapping(source, Mapping.address(address))

    def remove_address_mapping(self, source : MappingSource, address : str
                               ) -> bool:
        return self.remove_mapping(source, Mapping.address(address))

    def add_regex_mapping(self, source : MappingSource, regex : str) -> bool:
        return self.add_mapping(source, Mapping.regex(regex))

    def remove_regex_mapping(self, source : MappingSource, regex : str
                             ) -> bool:
        return self.remove_mapping(source, Mapping.regex(regex))

    def add_error_mapping(self, source : MappingSource, error : str) -> bool:
        return self.add_mapping(source, Mapping.error(error))

    def remove_error_mapping(self, source : MappingSource, error : str
                             ) -> bool:
        return self.remove_mapping(source, Mapping.error(error))

    def add_domain_mapping(self, source : MappingSource, domain : Domain
                           ) -> bool:
        return self.add_mapping(source, Mapping.domain(domain))

    def remove_domain_mapping(self, source : MappingSource, domain : Domain
                              ) -> bool:
        return self.remove_mapping(source, Mapping.domain(domain))

    def add_domain_alias_mapping(self, source : MappingSource,
                                 domain : Domain) -> bool:
        return self.add_mapping(source, Mapping.domain_alias(domain))

    def remove_domain_alias_mapping(self, source : MappingSource,
                                    domain : Domain) -> bool:
        return self.remove_mapping(source, Mapping.domain_alias(domain))

    def add_forward_mapping(self, source : MappingSource, address : str
                            ) -> bool:
        return self.add_mapping(source, Mapping.forward(address))

    def remove_forward_mapping(self, source : MappingSource, address : str
                               ) -> bool:
        return self.remove_mapping(source, Mapping.forward(address))

    def add_group_mapping(self, source : MappingSource, address : str
                          ) -> bool:
        return self.add_mapping(source, Mapping.group(address))

    def remove_group_mapping(self, source : MappingSource, address : str
                             ) -> bool:
        return self.remove_mapping(source, Mapping.group(address))

    def add_alias_mapping(self, source : MappingSource, address : str
                          ) -> bool:
        return self.add_mapping(source, Mapping.alias(address))

    def remove_alias_mapping(self, source : MappingSource, address : str
                             ) -> bool:
        return self.remove_mapping(source, Mapping.alias(address))

    def get_stored_mappings(self, source : MappingSource) -> Mappings:
        return self.store.get(source)

    def get_user_domain_mappings(self, source : MappingSource) -> Mappings:
        return self.get_stored_mappings(source)

    def get_all_mappings(self) -> Dict[MappingSource, Mappings]:
        mappings = self.store.get_all()
        logging.debug('Retrieve all mappings. Mapping count: %d',
                      len(mappings))
        return mappings

    def get_sources_for_type(self, mapping_type : MappingType
                             ) -> List[MappingSource]:
        return self.store.sources_for_type(mapping_type)

    def get_mappings_for_type(self, mapping_type : MappingType
                              ) -> List[Mapping]:
        out = set()
        for source in self.store.sources_for_type(mapping_type):
            out.update(self.store.get(source).select(mapping_type))
        return sorted(out, key=lambda m: m.payload)

    def list_sources(self, mapping : Mapping) -> List[MappingSource]:
        return self.store.sources_for_mapping(self._normalize(mapping))

    # Expand local_part@domain through the table: user mappings, else
    # the mappings of the bare domain.
    def get_resolved_mappings(
            self, local_part : str, domain : Domain,
            types : Optional[Iterable[MappingType]] = None) -> Mappings:
        type_set = frozenset(types) if types is not None else frozenset(
            MappingType)
        return self._resolve(MailAddress(local_part, domain), type_set,
                             self.configuration.mapping_limit)

    def _lookup(self, addr : MailAddress) -> Mappings:
        if mappings := self.store.get(MappingSource.from_mail_address(addr)):
            return mappings
        return self.store.get(MappingSource.from_domain(addr.domain))

    def _resolve(self, addr : MailAddress, types : AbstractSet[MappingType],
                 limit : int) -> Mappings:
        if limit <= 0:
            raise ErrorMappingException(TOO_MANY_MAPPINGS)

        stored = self._lookup(addr).select(*types)
        # domain rewrites go first
        ordered = ([m for m in stored if m.type.domain_rewrite] +
                   [m for m in stored if not m.type.domain_rewrite])

        out = Mappings()
        for m in ordered:
            if m.type == MappingType.Error:
                raise ErrorMappingException(Response.from_str(m.payload))
            if (target := self._rewrite(addr, m)) is None:
                continue
            logging.debug('Valid virtual user mapping %s to %s', addr, target)
            if not self.configuration.recursive:
                out.add(target)
                continue
            try:
                target_addr = MailAddress.parse(target.payload)
            except InvalidArgumentException:
                logging.info('not resolving unparseable target %s', target)
                out.add(target)
                continue
            if (target_addr.local_part.lower() == addr.local_part.lower() and
                    target_addr.domain == addr.domain):
                out.add(target)
                continue
            children = self._resolve(target_addr, types, limit - 1)
            if children:
                for child in children:
                    out.add(child)
            else:
                out.add(target)
        return out

    @staticmethod
    def _rewrite(addr : MailAddress, m : Mapping) -> Optional[Mapping]:
        if m.type.domain_rewrite:
            return Mapping.address(
                MailAddress(addr.local_part, Domain.of(m.payload)).as_string())
        elif m.type == MappingType.Regex:
            if (target := regex_map(addr, m.payload)) is None:
                return None
            return Mapping.address(target)
        elif m.type.redirecting:
            return m
        return None


# payload is "pattern:replacement", ${n} in the replacement is group n
# of the pattern matched against the whole address
def regex_map(addr : MailAddress, payload : str) -> Optional[str]:
    try:
        pattern, replacement = split_regex_payload(payload)
    except re.error:
        logging.exception('regex_map: invalid pattern %s', payload)
        return None
    if replacement is None:
        return None
    if (match := pattern.fullmatch(addr.as_string())) is None:
        return None

    def group(ref):
        i = int(ref.group(1))
        if i > match.re.groups:
            return ''
        return match.group(i) or ''
    return re.sub(r'\$\{(\d+)\}', group, replacement)

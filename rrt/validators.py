# Copyright The Koukan Authors
# SPDX-License-Identifier: Apache-2.0
from abc import ABC, abstractmethod
import logging
import re

from rrt.address import Domain, MailAddress
from rrt.domain_list import DomainList
from rrt.errors import (
    InvalidArgumentException,
    InvalidRegexException,
    SameSourceAndDestinationException,
    SourceDomainIsNotInDomainListException,
    SourceUserNotFoundException )
from rrt.mapping import (
    Mapping,
    MappingSource,
    PayloadKind,
    split_regex_payload )
from rrt.users_repository import UsersRepository

# Pre-write checks on a candidate (source, mapping). Payloads have
# already been normalized. check() raises the specific
# RecipientRewriteTableException on failure.
class MappingCheck(ABC):
    @abstractmethod
    def check(self, source : MappingSource, mapping : Mapping):
        raise NotImplementedError


class DomainMembershipCheck(MappingCheck):
    domain_list : DomainList

    def __init__(self, domain_list : DomainList):
        self.domain_list = domain_list

    def check(self, source : MappingSource, mapping : Mapping):
        if self.domain_list.contains_domain(source.domain):
            return
        raise SourceDomainIsNotInDomainListException(
            "Source domain '%s' is not managed by the domain list" %
            source.domain.as_string())


class SameSourceDestinationCheck(MappingCheck):
    def check(self, source : MappingSource, mapping : Mapping):
        kind = mapping.type.payload_kind
        if kind == PayloadKind.ADDRESS:
            same = (not source.is_domain() and
                    source.mail_address() == MailAddress.parse(mapping.payload))
        elif kind == PayloadKind.DOMAIN:
            same = source.domain == Domain.of(mapping.payload)
        else:
            same = False
        if same:
            raise SameSourceAndDestinationException(
                "Source and destination can't be the same!")


# domain aliases map a whole domain, never a single user
class DomainSourceCheck(MappingCheck):
    def check(self, source : MappingSource, mapping : Mapping):
        if not source.is_domain():
            raise InvalidArgumentException(
                'User must be null for domainAlias mappings')


class RegexSyntaxCheck(MappingCheck):
    def check(self, source : MappingSource, mapping : Mapping):
        try:
            split_regex_payload(mapping.payload)
        except re.error as e:
            logging.info('invalid regex %s: %s', mapping.payload, e)
            raise InvalidRegexException(
                'Invalid regex: ' + mapping.payload) from e


# forwards are attached to the mailbox of an existing user
class ExistingUserCheck(MappingCheck):
    users_repository : UsersRepository

    def __init__(self, users_repository : UsersRepository):
        self.users_repository = users_repository

    def check(self, source : MappingSource, mapping : Mapping):
        if (not source.is_domain() and
                self.users_repository.contains(source.as_string())):
            return
        raise SourceUserNotFoundException(
            "The base user '%s' does not exist" % source.as_string())

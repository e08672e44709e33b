# Copyright The Koukan Authors
# SPDX-License-Identifier: Apache-2.0
from typing import AbstractSet, List, Optional
from abc import ABC, abstractmethod
from enum import Enum
import logging

from rrt.errors import InvalidArgumentException
from rrt.mapping import MappingSource, MappingType

class EntityType(Enum):
    USER = 'user'
    ALIAS = 'alias'
    GROUP = 'group'

_MAPPING_TYPE = {
    EntityType.ALIAS: MappingType.Alias,
    EntityType.GROUP: MappingType.Group,
}

class ValidationFailure:
    message : str
    def __init__(self, message : str):
        self.message = message

    def __repr__(self):
        return 'ValidationFailure(%s)' % self.message

NO_IGNORED = frozenset()


# Answers "may an entity (user, alias, group) named username be
# created?" across the identity stores that share the address space.
class UserEntityValidator(ABC):
    @abstractmethod
    def can_create(self, username : str,
                   ignored_types : AbstractSet[EntityType] = NO_IGNORED
                   ) -> Optional[ValidationFailure]:
        raise NotImplementedError


class NoopUserEntityValidator(UserEntityValidator):
    def can_create(self, username : str,
                   ignored_types : AbstractSet[EntityType] = NO_IGNORED
                   ) -> Optional[ValidationFailure]:
        return None


class DefaultUserEntityValidator(UserEntityValidator):
    def __init__(self, users_repository):
        self.users_repository = users_repository

    def can_create(self, username : str,
                   ignored_types : AbstractSet[EntityType] = NO_IGNORED
                   ) -> Optional[ValidationFailure]:
        if EntityType.USER in ignored_types:
            return None
        if self.users_repository.contains(username):
            return ValidationFailure("'%s' user already exists" % username)
        return None


# rrt: anything with get_stored_mappings(MappingSource)
class RecipientRewriteTableUserEntityValidator(UserEntityValidator):
    def __init__(self, rrt):
        self.rrt = rrt

    def can_create(self, username : str,
                   ignored_types : AbstractSet[EntityType] = NO_IGNORED
                   ) -> Optional[ValidationFailure]:
        try:
            source = MappingSource.parse(username)
        except InvalidArgumentException:
            logging.debug('not a mapping source %s', username)
            return None
        types = [t for e, t in _MAPPING_TYPE.items()
                 if e not in ignored_types]
        if not types:
            return None
        mappings = self.rrt.get_stored_mappings(source).select(*types)
        if not mappings:
            return None
        return ValidationFailure(
            "'%s' already have associated mappings: %s" % (
                username, ', '.join(mappings.as_strings())))


class AggregateUserEntityValidator(UserEntityValidator):
    validators : List[UserEntityValidator]

    def __init__(self, validators : List[UserEntityValidator]):
        self.validators = validators

    def can_create(self, username : str,
                   ignored_types : AbstractSet[EntityType] = NO_IGNORED
                   ) -> Optional[ValidationFailure]:
        for v in self.validators:
            if (failure := v.can_create(username, ignored_types)) is not None:
                return failure
        return None

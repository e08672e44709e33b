# Copyright The Koukan Authors
# SPDX-License-Identifier: Apache-2.0
import logging

from rrt.errors import MappingConflictException
from rrt.mapping import Mapping, Mappings, MappingSource
from rrt.mapping_store import MappingStore
from rrt.user_entity_validator import EntityType, UserEntityValidator

# Alias and Group are mutually exclusive on a source, and neither may
# shadow a real user account.
class ConflictDetector:
    store : MappingStore
    # must not consult this rrt, only the identity stores beside it
    user_validator : UserEntityValidator

    def __init__(self, store : MappingStore,
                 user_validator : UserEntityValidator):
        self.store = store
        self.user_validator = user_validator

    def conflicting_mappings(self, source : MappingSource,
                             mapping : Mapping) -> Mappings:
        if (other := mapping.type.conflicting_type) is None:
            return Mappings()
        return self.store.get(source).select(other)

    def check(self, source : MappingSource, mapping : Mapping):
        if mapping.type.conflicting_type is None:
            return
        if conflicts := self.conflicting_mappings(source, mapping):
            logging.info('ConflictDetector %s %s conflicts with %s',
                         source, mapping, conflicts)
            raise MappingConflictException(
                "'%s' already have associated mappings: %s" % (
                    source.as_string(), ', '.join(conflicts.as_strings())))
        if source.is_domain():
            return
        failure = self.user_validator.can_create(
            source.as_string(), {EntityType.ALIAS, EntityType.GROUP})
        if failure is not None:
            logging.info('ConflictDetector %s %s: %s',
                         source, mapping, failure.message)
            raise MappingConflictException(failure.message)

# Copyright The Koukan Authors
# SPDX-License-Identifier: Apache-2.0
from typing import Optional
import logging
import logging.config

import yaml

from rrt.address import Domain, LOCALHOST
from rrt.domain_list import MemoryDomainList
from rrt.mapping_store import MappingStore, MemoryMappingStore
from rrt.recipient_rewrite_table import (
    RecipientRewriteTable,
    RecipientRewriteTableConfiguration )
from rrt.sql_mapping_store import SqlMappingStore
from rrt.user_entity_validator import (
    AggregateUserEntityValidator,
    DefaultUserEntityValidator,
    RecipientRewriteTableUserEntityValidator )
from rrt.users_repository import MemoryUsersRepository

# Wires a RecipientRewriteTable and its collaborators from yaml:
#
# rrt:
#   recursive_mapping: true
#   mapping_limit: 10
#   max_write_attempts: 5
# store:
#   url: sqlite+pysqlite:////var/lib/rrt/rrt.db  # absent -> in-memory
# domains:
#   default: example.com
#   list: [example.com, example.org]
# users: [alice@example.com]
# logging: {...}  # logging.config.dictConfig
class Config:
    root_yaml : dict
    store : Optional[MappingStore] = None
    domain_list : Optional[MemoryDomainList] = None
    users_repository : Optional[MemoryUsersRepository] = None
    rrt : Optional[RecipientRewriteTable] = None

    def __init__(self, root_yaml : Optional[dict] = None):
        self.root_yaml = root_yaml if root_yaml is not None else {}

    def load(self, config_filename : str):
        with open(config_filename, 'r') as yaml_file:
            self.root_yaml = yaml.load(yaml_file, Loader=yaml.CLoader)
        if self.root_yaml is None:
            self.root_yaml = {}

    def _store(self, store_yaml : dict) -> MappingStore:
        if (url := store_yaml.get('url', None)) is None:
            logging.info('Config: in-memory mapping store')
            return MemoryMappingStore()
        logging.info('Config: sql mapping store %s', url)
        return SqlMappingStore.connect(url)

    def _domain_list(self, domains_yaml : dict) -> MemoryDomainList:
        default = domains_yaml.get('default', None)
        default_domain = Domain.of(default) if default else LOCALHOST
        domains = [Domain.of(d) for d in domains_yaml.get('list', [])]
        if default_domain not in domains:
            domains.append(default_domain)
        return MemoryDomainList(domains, default_domain)

    def build(self) -> RecipientRewriteTable:
        logging_yaml = self.root_yaml.get('logging', None)
        if logging_yaml:
            logging.config.dictConfig(logging_yaml)

        rrt_yaml = self.root_yaml.get('rrt', {})
        self.store = self._store(self.root_yaml.get('store', {}))
        self.domain_list = self._domain_list(self.root_yaml.get('domains', {}))
        self.users_repository = MemoryUsersRepository()

        # The rrt only checks against the users; user creation checks
        # against both the users and the rrt.
        self.rrt = RecipientRewriteTable(
            self.store, self.domain_list, self.users_repository,
            configuration=RecipientRewriteTableConfiguration.from_yaml(
                rrt_yaml),
            user_validator=DefaultUserEntityValidator(self.users_repository),
            max_write_attempts=rrt_yaml.get('max_write_attempts', 5))
        self.users_repository.set_validator(AggregateUserEntityValidator([
            DefaultUserEntityValidator(self.users_repository),
            RecipientRewriteTableUserEntityValidator(self.rrt)]))

        for user in self.root_yaml.get('users', []):
            if isinstance(user, dict):
                self.users_repository.add_user(
                    user['name'], user.get('password', ''))
            else:
                self.users_repository.add_user(user, '')
        return self.rrt

    def close(self):
        if self.store is not None:
            self.store.close()

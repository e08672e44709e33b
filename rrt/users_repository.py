# Copyright The Koukan Authors
# SPDX-License-Identifier: Apache-2.0
from typing import Dict, List, Optional, Tuple
from abc import ABC, abstractmethod
from hashlib import sha256
from threading import Lock
import logging
import secrets

from rrt.address import MailAddress
from rrt.errors import (
    InvalidArgumentException,
    MappingConflictException )
from rrt.user_entity_validator import (
    NoopUserEntityValidator,
    UserEntityValidator )

def normalize_username(username : str) -> str:
    if not username:
        raise InvalidArgumentException('empty username')
    if '@' in username:
        # validates and lowercases the domain
        MailAddress.parse(username)
    return username.lower()


class UsersRepository(ABC):
    @abstractmethod
    def contains(self, username : str) -> bool:
        raise NotImplementedError


class MemoryUsersRepository(UsersRepository):
    lock : Lock
    # username -> (salt, sha256(salt + password))
    users : Dict[str, Tuple[str, str]]
    validator : UserEntityValidator

    def __init__(self, validator : Optional[UserEntityValidator] = None):
        self.lock = Lock()
        self.users = {}
        self.validator = validator if validator else NoopUserEntityValidator()

    # The validator usually consults the RecipientRewriteTable which in
    # turn holds this repository, so it is wired after construction.
    def set_validator(self, validator : UserEntityValidator):
        self.validator = validator

    @staticmethod
    def _hash(salt : str, password : str) -> str:
        return sha256((salt + password).encode('utf-8')).hexdigest()

    def contains(self, username : str) -> bool:
        username = normalize_username(username)
        with self.lock:
            return username in self.users

    def add_user(self, username : str, password : str):
        username = normalize_username(username)
        if (failure := self.validator.can_create(username)) is not None:
            logging.info('MemoryUsersRepository.add_user %s rejected: %s',
                         username, failure.message)
            raise MappingConflictException(failure.message)
        salt = secrets.token_hex(8)
        with self.lock:
            if username in self.users:
                raise MappingConflictException(
                    "'%s' user already exists" % username)
            self.users[username] = (salt, self._hash(salt, password))
        logging.info('MemoryUsersRepository.add_user %s', username)

    def remove_user(self, username : str):
        username = normalize_username(username)
        with self.lock:
            self.users.pop(username, None)

    def test(self, username : str, password : str) -> bool:
        username = normalize_username(username)
        with self.lock:
            if (entry := self.users.get(username, None)) is None:
                return False
        salt, digest = entry
        return secrets.compare_digest(digest, self._hash(salt, password))

    def list_users(self) -> List[str]:
        with self.lock:
            return sorted(self.users.keys())

# Copyright The Koukan Authors
# SPDX-License-Identifier: Apache-2.0
from typing import List, Optional
from abc import ABC, abstractmethod
from threading import Lock
import logging

from rrt.address import Domain, LOCALHOST

class DomainList(ABC):
    @abstractmethod
    def contains_domain(self, domain : Domain) -> bool:
        raise NotImplementedError

    # used to complete address mappings given without a domain part
    @abstractmethod
    def get_default_domain(self) -> Domain:
        raise NotImplementedError


class MemoryDomainList(DomainList):
    lock : Lock
    domains : List[Domain]
    default_domain : Domain

    def __init__(self, domains : Optional[List[Domain]] = None,
                 default_domain : Domain = LOCALHOST):
        self.lock = Lock()
        self.domains = list(domains) if domains else []
        self.default_domain = default_domain

    def contains_domain(self, domain : Domain) -> bool:
        with self.lock:
            return domain in self.domains

    def get_default_domain(self) -> Domain:
        return self.default_domain

    def add_domain(self, domain : Domain):
        with self.lock:
            if domain in self.domains:
                return
            logging.info('MemoryDomainList.add_domain %s', domain)
            self.domains.append(domain)

    def remove_domain(self, domain : Domain):
        with self.lock:
            if domain in self.domains:
                self.domains.remove(domain)

    def get_domains(self) -> List[Domain]:
        with self.lock:
            return list(self.domains)

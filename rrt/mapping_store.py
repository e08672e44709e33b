# Copyright The Koukan Authors
# SPDX-License-Identifier: Apache-2.0
from typing import Dict, List, Optional, Set, Tuple
from abc import ABC, abstractmethod
from threading import Lock
import logging

from rrt.mapping import Mapping, Mappings, MappingSource, MappingType

# A write raced with another write that committed after the writer
# captured the store version.
class VersionConflictException(Exception):
    pass


class MappingStore(ABC):
    # Every write that may have changed the store bumps the version. add() with
    # expected_version raises VersionConflictException if the store
    # moved in the meantime; the forward map and both reverse indices
    # change together or not at all.

    @abstractmethod
    def version(self) -> int:
        raise NotImplementedError

    # absent source -> empty Mappings
    @abstractmethod
    def get(self, source : MappingSource) -> Mappings:
        raise NotImplementedError

    @abstractmethod
    def get_all(self) -> Dict[MappingSource, Mappings]:
        raise NotImplementedError

    # sorted, distinct
    @abstractmethod
    def sources_for_type(self, mapping_type : MappingType
                         ) -> List[MappingSource]:
        raise NotImplementedError

    # sorted, distinct
    @abstractmethod
    def sources_for_mapping(self, mapping : Mapping) -> List[MappingSource]:
        raise NotImplementedError

    # -> False if the (source, mapping) pair was already present
    @abstractmethod
    def add(self, source : MappingSource, mapping : Mapping,
            expected_version : Optional[int] = None) -> bool:
        raise NotImplementedError

    # -> False if the pair was absent
    @abstractmethod
    def remove(self, source : MappingSource, mapping : Mapping) -> bool:
        raise NotImplementedError

    def close(self):
        pass


class MemoryMappingStore(MappingStore):
    lock : Lock
    _version : int
    _forward : Dict[MappingSource, Mappings]
    _by_type : Dict[MappingType, Set[MappingSource]]
    _by_entry : Dict[Tuple[MappingType, str], Set[MappingSource]]

    def __init__(self):
        self.lock = Lock()
        self._version = 0
        self._forward = {}
        self._by_type = {}
        self._by_entry = {}

    def version(self) -> int:
        with self.lock:
            return self._version

    def get(self, source : MappingSource) -> Mappings:
        with self.lock:
            if (mappings := self._forward.get(source, None)) is None:
                return Mappings()
            return mappings.copy()

    def get_all(self) -> Dict[MappingSource, Mappings]:
        with self.lock:
            return { source: mappings.copy()
                     for source, mappings in self._forward.items() }

    def sources_for_type(self, mapping_type : MappingType
                         ) -> List[MappingSource]:
        with self.lock:
            return sorted(self._by_type.get(mapping_type, set()))

    def sources_for_mapping(self, mapping : Mapping) -> List[MappingSource]:
        with self.lock:
            return sorted(self._by_entry.get(
                (mapping.type, mapping.payload), set()))

    def add(self, source : MappingSource, mapping : Mapping,
            expected_version : Optional[int] = None) -> bool:
        with self.lock:
            if (expected_version is not None and
                    expected_version != self._version):
                logging.info('MemoryMappingStore.add version conflict '
                             'expected %d store %d',
                             expected_version, self._version)
                raise VersionConflictException()
            mappings = self._forward.setdefault(source, Mappings())
            if not mappings.add(mapping):
                return False
            self._by_type.setdefault(mapping.type, set()).add(source)
            self._by_entry.setdefault(
                (mapping.type, mapping.payload), set()).add(source)
            self._version += 1
            return True

    def remove(self, source : MappingSource, mapping : Mapping) -> bool:
        with self.lock:
            mappings = self._forward.get(source, None)
            if mappings is None or not mappings.remove(mapping):
                return False
            if mappings.is_empty():
                del self._forward[source]

            if not mappings.contains(mapping.type):
                self._discard(self._by_type, mapping.type, source)
            self._discard(self._by_entry, (mapping.type, mapping.payload),
                          source)
            self._version += 1
            return True

    @staticmethod
    def _discard(index : dict, key, source : MappingSource):
        if (sources := index.get(key, None)) is None:
            return
        sources.discard(source)
        if not sources:
            del index[key]

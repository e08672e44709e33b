# Copyright The Koukan Authors
# SPDX-License-Identifier: Apache-2.0
from typing import List, Optional, Set, Union
import logging

from rrt.errors import InvalidArgumentException
from rrt.mapping import MappingSource, MappingType, Mapping
from rrt.mapping_store import MappingStore

class NoLoop:
    def __bool__(self):
        return False

    def __repr__(self):
        return 'NoLoop'

NO_LOOP = NoLoop()

# The stored edge via --mapping_type--> source closes the cycle.
class LoopVia:
    mapping_type : MappingType
    via : MappingSource

    def __init__(self, mapping_type : MappingType, via : MappingSource):
        self.mapping_type = mapping_type
        self.via = via

    def __bool__(self):
        return True

    def __repr__(self):
        return 'LoopVia(%s %s)' % (self.mapping_type.value, self.via)

    def __eq__(self, rhs):
        if not isinstance(rhs, LoopVia):
            return False
        return self.mapping_type == rhs.mapping_type and self.via == rhs.via

LoopResult = Union[NoLoop, LoopVia]


class LoopDetector:
    store : MappingStore

    def __init__(self, store : MappingStore):
        self.store = store

    @staticmethod
    def _next_hop(node : MappingSource, m : Mapping
                  ) -> Optional[MappingSource]:
        try:
            return m.as_source()
        except InvalidArgumentException:
            logging.warning('LoopDetector skipping unparseable mapping '
                            '%s of %s', m, node)
            return None

    # Would adding source --mapping_type--> destination let a chain of
    # redirecting mappings starting at destination come back to source?
    # A direct self-redirection is not a loop.
    def would_create_loop(self, source : MappingSource,
                          mapping_type : MappingType,
                          destination : str) -> LoopResult:
        if not mapping_type.redirecting:
            return NO_LOOP
        start = Mapping(mapping_type, destination).as_source()
        if start is None or start == source:
            return NO_LOOP

        visited : Set[MappingSource] = set()
        frontier : List[MappingSource] = [start]
        while frontier:
            node = frontier.pop()
            if node in visited:
                continue
            visited.add(node)
            for m in self.store.get(node):
                if not m.type.redirecting:
                    continue
                if (hop := self._next_hop(node, m)) is None:
                    continue
                if hop == source:
                    logging.debug('LoopDetector %s -> %s closes via %s %s',
                                  source, destination, node, m)
                    return LoopVia(m.type, node)
                if hop not in visited:
                    frontier.append(hop)
        return NO_LOOP

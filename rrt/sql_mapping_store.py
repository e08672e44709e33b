# Copyright The Koukan Authors
# SPDX-License-Identifier: Apache-2.0
from typing import Dict, List, Optional
from contextlib import contextmanager
import logging

from sqlalchemy import create_engine
from sqlalchemy import event
from sqlalchemy.engine import Connection, CursorResult, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import (
    MetaData,
    Table,
    and_,
    delete,
    insert,
    select,
    update )

from rrt.errors import RecipientRewriteTableException
from rrt.mapping import Mapping, Mappings, MappingSource, MappingType
from rrt.mapping_store import MappingStore, VersionConflictException

# the implementation of CursorResult.rowcount apparently involves too
# much metaprogramming for pytype to infer correctly
def rowcount(res : CursorResult) -> int:
    count = res.rowcount
    assert isinstance(count, int)
    return count

VERSION_ROW = 0

class SqlMappingStore(MappingStore):
    engine : Optional[Engine] = None
    mapping_table : Optional[Table] = None
    version_table : Optional[Table] = None

    def __init__(self, engine : Optional[Engine] = None):
        self.engine = engine

    @staticmethod
    def _sqlite_pragma(dbapi_conn, con_record):
        # isn't sticky from schema so set it again here
        dbapi_conn.execute("PRAGMA journal_mode=WAL")
        # FULL=2, flush WAL on every write
        dbapi_conn.execute("PRAGMA synchronous=2")

    @staticmethod
    def connect(url : str) -> 'SqlMappingStore':
        engine = create_engine(url)
        if 'sqlite' in url:
            event.listen(engine, 'connect', SqlMappingStore._sqlite_pragma)
        s = SqlMappingStore(engine=engine)
        with s._db_errors():
            s._init_tables()
        return s

    def close(self):
        if self.engine is not None:
            self.engine.dispose()

    def begin_transaction(self):
        assert self.engine is not None
        return self.engine.begin()

    @contextmanager
    def _db_errors(self):
        try:
            yield
        except SQLAlchemyError as e:
            logging.exception('SqlMappingStore database error')
            raise RecipientRewriteTableException(
                'Error accessing database') from e

    def _init_tables(self):
        self.metadata = MetaData()
        self.metadata.reflect(bind=self.engine)
        # the tablenames seem to be lowercased for postgres, sqlite
        # doesn't care?
        self.mapping_table = Table(
            'rrt_mappings', self.metadata, autoload_with=self.engine)
        self.version_table = Table(
            'rrt_version', self.metadata, autoload_with=self.engine)

    def version(self) -> int:
        assert self.version_table is not None
        with self._db_errors(), self.begin_transaction() as db_tx:
            sel = select(self.version_table.c.version).where(
                self.version_table.c.id == VERSION_ROW)
            row = db_tx.execute(sel).fetchone()
            assert row is not None, 'rrt_version row missing'
            return row[0]

    def get(self, source : MappingSource) -> Mappings:
        assert self.mapping_table is not None
        with self._db_errors(), self.begin_transaction() as db_tx:
            sel = (select(self.mapping_table.c.mapping_type,
                          self.mapping_table.c.mapping)
                   .where(self.mapping_table.c.source == source.as_string()))
            res = db_tx.execute(sel)
            return Mappings(Mapping(MappingType(row[0]), row[1])
                            for row in res)

    def get_all(self) -> Dict[MappingSource, Mappings]:
        assert self.mapping_table is not None
        out : Dict[MappingSource, Mappings] = {}
        with self._db_errors(), self.begin_transaction() as db_tx:
            sel = select(self.mapping_table.c.source,
                         self.mapping_table.c.mapping_type,
                         self.mapping_table.c.mapping)
            for row in db_tx.execute(sel):
                source = MappingSource.parse(row[0])
                out.setdefault(source, Mappings()).add(
                    Mapping(MappingType(row[1]), row[2]))
        return out

    def _sources(self, db_tx : Connection, *where) -> List[MappingSource]:
        assert self.mapping_table is not None
        sel = (select(self.mapping_table.c.source)
               .where(*where)
               .distinct())
        return sorted(MappingSource.parse(row[0])
                      for row in db_tx.execute(sel))

    def sources_for_type(self, mapping_type : MappingType
                         ) -> List[MappingSource]:
        assert self.mapping_table is not None
        with self._db_errors(), self.begin_transaction() as db_tx:
            return self._sources(
                db_tx, self.mapping_table.c.mapping_type == mapping_type.value)

    def sources_for_mapping(self, mapping : Mapping) -> List[MappingSource]:
        assert self.mapping_table is not None
        with self._db_errors(), self.begin_transaction() as db_tx:
            return self._sources(
                db_tx,
                self.mapping_table.c.mapping_type == mapping.type.value,
                self.mapping_table.c.mapping == mapping.payload)

    # Bump the version first so sqlite takes the write lock up front
    # rather than upgrading a read transaction.
    def _bump_version(self, db_tx : Connection,
                      expected_version : Optional[int]):
        assert self.version_table is not None
        upd = (update(self.version_table)
               .values(version = self.version_table.c.version + 1)
               .where(self.version_table.c.id == VERSION_ROW))
        if expected_version is not None:
            upd = upd.where(self.version_table.c.version == expected_version)
        res = db_tx.execute(upd.returning(self.version_table.c.version))
        row = res.fetchone()
        if row is None:
            logging.info('SqlMappingStore version conflict expected %s',
                         expected_version)
            raise VersionConflictException()
        logging.debug('SqlMappingStore version %d', row[0])

    def _entry(self, source : MappingSource, mapping : Mapping):
        assert self.mapping_table is not None
        return and_(self.mapping_table.c.source == source.as_string(),
                    self.mapping_table.c.mapping_type == mapping.type.value,
                    self.mapping_table.c.mapping == mapping.payload)

    def add(self, source : MappingSource, mapping : Mapping,
            expected_version : Optional[int] = None) -> bool:
        assert self.mapping_table is not None
        with self._db_errors(), self.begin_transaction() as db_tx:
            self._bump_version(db_tx, expected_version)
            sel = select(self.mapping_table.c.source).where(
                self._entry(source, mapping))
            if db_tx.execute(sel).fetchone() is not None:
                return False
            db_tx.execute(insert(self.mapping_table).values(
                source = source.as_string(),
                mapping_type = mapping.type.value,
                mapping = mapping.payload))
        logging.info('SqlMappingStore.add %s %s', source, mapping)
        return True

    def remove(self, source : MappingSource, mapping : Mapping) -> bool:
        assert self.mapping_table is not None
        with self._db_errors(), self.begin_transaction() as db_tx:
            self._bump_version(db_tx, None)
            res = db_tx.execute(delete(self.mapping_table).where(
                self._entry(source, mapping)))
            deleted = rowcount(res)
        logging.info('SqlMappingStore.remove %s %s deleted %d',
                     source, mapping, deleted)
        return deleted > 0

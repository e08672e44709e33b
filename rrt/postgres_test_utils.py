# Copyright The Koukan Authors
# SPDX-License-Identifier: Apache-2.0
from typing import Optional, Tuple
import logging
import os
import psycopg
import psycopg.errors
import testing.postgresql

SCHEMA = os.path.join(os.path.dirname(__file__), 'init_rrt_postgres.sql')
TEST_DB = 'rrt_test'

pg_factory : Optional[testing.postgresql.PostgresqlFactory] = None

# testing.postgresql runs a throwaway server from the local initdb/postgres
def have_postgres() -> bool:
    try:
        testing.postgresql.find_program('initdb', ['bin'])
    except RuntimeError:
        return False
    return True

def setUpModule():
    global pg_factory
    if have_postgres():
        pg_factory = testing.postgresql.PostgresqlFactory(
            cache_initialized_db=True)

def tearDownModule():
    if pg_factory is not None:
        pg_factory.clear_cache()

# peer auth over the unix socket, SA can't build this url from parts
def socket_url(pg, db : str, scheme : str = 'postgresql') -> str:
    return '%s://postgres@/%s?host=%s/tmp&port=%d' % (
        scheme, db, pg.base_dir, pg.dsn()['port'])

def _recreate_database(pg, db : str):
    with psycopg.connect(socket_url(pg, 'postgres'), autocommit=True) as conn:
        try:
            conn.execute('drop database %s;' % db)
        except psycopg.errors.InvalidCatalogName:
            logging.debug('postgres_test_utils: no database %s', db)
        conn.execute('create database %s;' % db)

def _load_schema(pg, db : str):
    with open(SCHEMA, 'r') as f:
        schema = f.read()
    with psycopg.connect(socket_url(pg, db)) as conn:
        conn.execute(schema)

# -> (server, sqlalchemy url of a fresh rrt database)
def setup_postgres() -> Tuple[testing.postgresql.Postgresql, str]:
    assert pg_factory is not None
    pg = pg_factory()
    _recreate_database(pg, TEST_DB)
    _load_schema(pg, TEST_DB)
    url = socket_url(pg, TEST_DB, scheme='postgresql+psycopg')
    logging.info('postgres_test_utils.setup_postgres %s', url)
    return pg, url

# Copyright The Koukan Authors
# SPDX-License-Identifier: Apache-2.0
from typing import Tuple
from tempfile import TemporaryDirectory
import os
import sqlite3

SCHEMA = os.path.join(os.path.dirname(__file__), 'init_rrt.sql')

def create_temp_sqlite_for_test() -> Tuple[TemporaryDirectory, str]:
    dir = TemporaryDirectory()
    filename = os.path.join(dir.name, 'rrt.db')
    conn = sqlite3.connect(filename)
    with open(SCHEMA, 'r') as f:
        conn.executescript(f.read())
    conn.close()
    return dir, 'sqlite+pysqlite:///' + filename

#
# This source file is part of the EdgeDB open source project.
#
# Copyright 2008-present MagicStack Inc. and the EdgeDB authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#


"""Test case classes for the pgvariants test-suite."""

from __future__ import annotations
from typing import (
    Any,
    Optional,
)

import asyncio
import contextlib
import functools
import inspect
import os
import unittest

import asyncpg

from pgvariants import defines
from pgvariants import memory
from pgvariants import registry as b_registry
from pgvariants import pgsql
from pgvariants.pgsql import errormech


class TestCaseMeta(type(unittest.TestCase)):

    @staticmethod
    def _iter_methods(bases, ns):
        for base in bases:
            for methname in dir(base):
                if not methname.startswith('test_'):
                    continue

                meth = getattr(base, methname)
                if not inspect.iscoroutinefunction(meth):
                    continue

                yield methname, meth

        for methname, meth in ns.items():
            if not methname.startswith('test_'):
                continue

            if not inspect.iscoroutinefunction(meth):
                continue

            yield methname, meth

    @classmethod
    def wrap(mcls, meth):
        @functools.wraps(meth)
        def wrapper(self, *args, __meth__=meth, **kwargs):
            self.loop.run_until_complete(__meth__(self, *args, **kwargs))

        return wrapper

    @classmethod
    def add_method(mcls, methname, ns, meth):
        ns[methname] = mcls.wrap(meth)

    def __new__(mcls, name, bases, ns):
        for methname, meth in mcls._iter_methods(bases, ns.copy()):
            if methname in ns:
                del ns[methname]
            mcls.add_method(methname, ns, meth)

        return super().__new__(mcls, name, bases, ns)


class TestCase(unittest.TestCase, metaclass=TestCaseMeta):

    @classmethod
    def setUpClass(cls):
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        cls.loop = loop

    @classmethod
    def tearDownClass(cls):
        cls.loop.close()
        asyncio.set_event_loop(None)

    @contextlib.contextmanager
    def assertRaisesRegex(self, exception, regex, msg=None, **kwargs):
        with super().assertRaisesRegex(exception, regex, msg=msg):
            try:
                yield
            except BaseException as e:
                if isinstance(e, exception):
                    for attr_name, expected_val in kwargs.items():
                        val = getattr(e, attr_name)
                        if val != expected_val:
                            raise self.failureException(
                                f'{exception.__name__} context attribute '
                                f'{attr_name!r} is {val} (expected '
                                f'{expected_val!r})') from e
                raise


class MemoryTestCase(TestCase):
    """A test case with a fresh in-memory database for every test."""

    def setUp(self):
        self.db = memory.Database()
        self.backend = memory.MemoryBackend(self.db)
        self.registry = b_registry.Registry(self.backend)
        super().setUp()

    def create_table(self, name, columns, primary_key):
        return self.db.create_table(name, columns, primary_key)


def get_test_dsn() -> Optional[str]:
    return os.environ.get(defines.TEST_DSN_ENV_VAR) or None


class PGTestCase(TestCase):
    """A test case connected to the server named by the environment.

    Each test runs inside a transaction which is rolled back when the
    test ends, so deferred constraints are only checked when a test
    asks for it with :meth:`check_deferred`.
    """

    TRANSACTION_ISOLATION = True
    SCHEMA = 'pgvariants_test'

    con: Any = None

    @classmethod
    def setUpClass(cls):
        dsn = get_test_dsn()
        if dsn is None:
            raise unittest.SkipTest(
                f'{defines.TEST_DSN_ENV_VAR} is not set')

        super().setUpClass()
        try:
            cls.con = cls.loop.run_until_complete(asyncpg.connect(dsn))
        except BaseException:
            super().tearDownClass()
            raise

    @classmethod
    def tearDownClass(cls):
        try:
            if cls.con is not None:
                cls.loop.run_until_complete(cls.con.close())
                cls.con = None
        finally:
            super().tearDownClass()

    def setUp(self):
        if self.TRANSACTION_ISOLATION:
            self.xact = self.con.transaction()
            self.loop.run_until_complete(self.xact.start())

        self.loop.run_until_complete(self.con.execute(
            f'CREATE SCHEMA {self.SCHEMA}; '
            f'SET LOCAL search_path TO {self.SCHEMA}, pg_catalog'
        ))
        self.backend = pgsql.PGBackend(self.con)
        self.registry = b_registry.Registry(
            self.backend, default_schema=self.SCHEMA)
        super().setUp()

    def tearDown(self):
        try:
            if self.TRANSACTION_ISOLATION:
                self.loop.run_until_complete(self.xact.rollback())
                del self.xact

            if self.con.is_in_transaction():
                self.loop.run_until_complete(self.con.execute('ROLLBACK'))
                raise AssertionError(
                    'test connection is still in transaction '
                    '*after* the test')
        finally:
            super().tearDown()

    async def check_deferred(self):
        """Check the deferred constraints as a commit would."""
        try:
            async with self.con.transaction():
                await self.con.execute('SET CONSTRAINTS ALL IMMEDIATE')
                await self.con.execute('SET CONSTRAINTS ALL DEFERRED')
        except asyncpg.PostgresError as e:
            _error = errormech.translate_pg_error(e)
            if _error is not None:
                raise _error from e
            else:
                raise

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

from __future__ import annotations
from typing import (
    Any,
    AsyncIterator,
    Optional,
    Sequence,
    Set,
    Tuple,
)

import contextlib
import logging

import asyncpg

from pgvariants import backend as b_backend
from pgvariants import defines
from pgvariants.schema import bindings as s_bindings
from pgvariants.schema import relations as s_rel

from . import common
from . import dbops
from . import deltas
from . import errormech
from . import introspection
from . import metaschema


logger = logging.getLogger('pgvariants.pgsql')


class PGBackend(b_backend.Backend):
    """Install bindings through an asyncpg connection."""

    def __init__(
        self,
        connection: asyncpg.Connection,
        *,
        function_schema: str = defines.VARIANTS_FUNCTION_SCHEMA,
    ) -> None:
        self._con = connection
        self._function_schema = function_schema

    @property
    def connection(self) -> asyncpg.Connection:
        return self._con

    @contextlib.asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        # Deferred constraints are checked on commit, so the errors
        # raised when leaving the block need translating as well.
        try:
            async with self._con.transaction():
                yield
        except asyncpg.PostgresError as e:
            _error = errormech.translate_pg_error(e)
            if _error is not None:
                raise _error from e
            else:
                raise

    async def execute(self, command: dbops.Command) -> None:
        block = dbops.SQLBlock()
        command.generate(block)
        sql = block.to_string()
        if not sql:
            return

        logger.debug('executing:\n%s', sql)
        try:
            await self._con.execute(sql)
        except asyncpg.PostgresError as e:
            _error = errormech.translate_pg_error(e)
            if _error is not None:
                raise _error from e
            else:
                raise

    async def get_primary_key(
        self,
        name: s_rel.RelationName,
    ) -> s_rel.PrimaryKey:
        return await introspection.get_primary_key(self._con, name)

    async def trigger_exists(
        self,
        table: s_rel.RelationName,
        trigger_name: str,
    ) -> bool:
        cond = dbops.TriggerExists(trigger_name, table)
        return await self._con.fetchval(cond.code()) is not None

    async def constraint_exists(
        self,
        table: s_rel.RelationName,
        constraint_name: str,
    ) -> bool:
        cond = dbops.TableConstraintExists(table, constraint_name)
        return await self._con.fetchval(cond.code()) is not None

    async def install_constraint(self, binding: s_bindings.Binding) -> None:
        await self.execute(deltas.InstallConstraint(binding))

    async def install_hooks(self, binding: s_bindings.Binding) -> None:
        commands = dbops.CommandGroup()
        commands.add_command(
            metaschema.get_bootstrap_commands(self._function_schema))
        commands.add_command(deltas.SynthesizeHooks(
            binding, function_schema=self._function_schema))
        await self.execute(commands)

    async def get_bindings(
        self,
        *,
        union: Optional[s_rel.RelationName] = None,
        variant: Optional[s_rel.RelationName] = None,
    ) -> Sequence[s_bindings.Binding]:
        found = await introspection.get_bindings(
            self._con, function_schema=self._function_schema)
        return [
            b for b in found
            if (union is None or b.union == union)
            and (variant is None or b.variant == variant)
        ]

    async def fetch_keys(
        self,
        name: s_rel.RelationName,
        columns: Sequence[str],
    ) -> Set[Tuple[Any, ...]]:
        rows = await self._con.fetch(
            f'SELECT {common.quote_cols(tuple(columns))} '
            f'FROM {common.qname(*name)}'
        )
        return {tuple(r.values()) for r in rows}

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

"""Catalog queries used when installing and auditing bindings."""

from __future__ import annotations
from typing import (
    Dict,
    List,
)

import logging
import textwrap

import asyncpg

from pgvariants import defines
from pgvariants import errors
from pgvariants.schema import bindings as s_bindings
from pgvariants.schema import relations as s_rel

from . import common


logger = logging.getLogger('pgvariants.pgsql')


PRIMARY_KEY_QUERY = textwrap.dedent('''\
    SELECT
        a.attname AS name,
        format_type(a.atttypid, a.atttypmod) AS type
    FROM
        pg_catalog.pg_index i
        CROSS JOIN LATERAL unnest(i.indkey::int2[])
            WITH ORDINALITY AS k(attnum, pos)
        INNER JOIN pg_catalog.pg_attribute a
            ON (a.attrelid = i.indrelid AND a.attnum = k.attnum)
    WHERE
        i.indrelid = $1::oid
        AND i.indisprimary
    ORDER BY
        k.pos
''')


BINDINGS_QUERY = textwrap.dedent('''\
    SELECT
        ns.nspname AS schema_name,
        tab.relname AS table_name,
        tg.tgname AS name,
        tg.tgargs AS args
    FROM
        pg_catalog.pg_trigger tg
        INNER JOIN pg_catalog.pg_class tab
            ON (tab.oid = tg.tgrelid)
        INNER JOIN pg_catalog.pg_namespace ns
            ON (ns.oid = tab.relnamespace)
    WHERE
        tg.tgfoid = to_regprocedure($1)::oid
    ORDER BY
        ns.nspname, tab.relname, tg.tgname
''')


async def get_relation_oid(
    con: asyncpg.Connection,
    name: s_rel.RelationName,
) -> int:
    oid = await con.fetchval(
        'SELECT to_regclass($1)::oid', common.qname(*name))
    if oid is None:
        raise errors.MetadataError(
            f'relation {s_rel.display_name(name)} does not exist')
    return oid


async def get_primary_key(
    con: asyncpg.Connection,
    name: s_rel.RelationName,
) -> s_rel.PrimaryKey:
    oid = await get_relation_oid(con, name)
    rows = await con.fetch(PRIMARY_KEY_QUERY, oid)
    if not rows:
        raise errors.MetadataError(
            f'relation {s_rel.display_name(name)} has no primary key')

    return s_rel.PrimaryKey(
        relation=name,
        columns=tuple(s_rel.Column(r['name'], r['type']) for r in rows),
    )


def _decode_trigger_args(args: bytes) -> List[str]:
    # pg_trigger.tgargs holds NUL-terminated arguments.
    return [a.decode() for a in bytes(args).split(b'\x00')[:-1]]


async def get_bindings(
    con: asyncpg.Connection,
    *,
    function_schema: str = defines.VARIANTS_FUNCTION_SCHEMA,
) -> List[s_bindings.Binding]:
    fname = common.qname(*common.get_propagate_function_name(
        function_schema))
    rows = await con.fetch(BINDINGS_QUERY, f'{fname}()')

    mappings: Dict[s_rel.RelationName, s_bindings.ColumnMapping] = {}
    for row in rows:
        args = _decode_trigger_args(row['args'])
        if not args:
            logger.warning(
                'trigger %s on %s.%s calls %s without a descriptor',
                row['name'], row['schema_name'], row['table_name'], fname)
            continue
        mapping = s_bindings.ColumnMapping.from_json(args[0])
        mappings.setdefault(mapping.variant, mapping)

    return [s_bindings.Binding.create(m) for m in mappings.values()]

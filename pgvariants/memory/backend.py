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

"""Bindings over the in-memory store."""

from __future__ import annotations
from typing import (
    Any,
    AsyncIterator,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
)

import contextlib
import logging

from pgvariants import backend as b_backend
from pgvariants import errors
from pgvariants.common import enum as s_enum
from pgvariants.schema import bindings as s_bindings
from pgvariants.schema import relations as s_rel

from . import engine


logger = logging.getLogger('pgvariants.memory')


def propagate(db: engine.Database, td: engine.TriggerData) -> None:
    """Mirror a change of a variant row's key into its union.

    The column mapping is read from the first trigger argument, so
    one procedure serves every binding.
    """
    mapping = s_bindings.ColumnMapping.from_json(td.args[0])

    if td.event is s_enum.TriggerEvent.Insert:
        assert td.new is not None
        db.insert(mapping.union, mapping.to_union_row(td.new))
    elif td.event is s_enum.TriggerEvent.Update:
        assert td.old is not None and td.new is not None
        db.update_where(
            mapping.union,
            mapping.to_union_row(td.old),
            mapping.to_union_row(td.new),
        )
    elif td.event is s_enum.TriggerEvent.Delete:
        assert td.old is not None
        db.delete_where(mapping.union, mapping.to_union_row(td.old))
    else:
        raise errors.InternalError(f'unexpected trigger event: {td.event}')


class MemoryBackend(b_backend.Backend):

    def __init__(self, db: engine.Database) -> None:
        self._db = db

    @property
    def db(self) -> engine.Database:
        return self._db

    @property
    def default_schema(self) -> str:
        return self._db.default_schema

    @contextlib.asynccontextmanager
    async def transaction(self) -> AsyncIterator[engine.Database]:
        with self._db.transaction() as db:
            yield db

    async def get_primary_key(
        self,
        name: s_rel.RelationName,
    ) -> s_rel.PrimaryKey:
        return self._db.get_relation(name).get_primary_key()

    async def trigger_exists(
        self,
        table: s_rel.RelationName,
        trigger_name: str,
    ) -> bool:
        return self._db.get_trigger(table, trigger_name) is not None

    async def constraint_exists(
        self,
        table: s_rel.RelationName,
        constraint_name: str,
    ) -> bool:
        return self._db.get_foreign_key(table, constraint_name) is not None

    async def install_constraint(self, binding: s_bindings.Binding) -> None:
        mapping = binding.mapping

        # Adding the reference validates the rows already in the
        # variant, so their keys must reach the union first.
        rows = self._db.rows(binding.variant)
        for row in rows:
            self._db.insert(binding.union, mapping.to_union_row(row))
        logger.debug('backfilled %d keys from %s into %s', len(rows),
                     s_rel.display_name(binding.variant),
                     s_rel.display_name(binding.union))

        self._db.add_foreign_key(engine.ForeignKey(
            name=binding.constraint_name,
            table=binding.variant,
            columns=mapping.variant_columns,
            ref_table=binding.union,
            ref_columns=mapping.union_columns,
            on_update=s_enum.ReferentialAction.Cascade,
            on_delete=s_enum.ReferentialAction.Cascade,
            deferrable=True,
            deferred=True,
        ))

    async def install_hooks(self, binding: s_bindings.Binding) -> None:
        descriptor = binding.mapping.to_json()

        for event in s_enum.TriggerEvent:
            if event is s_enum.TriggerEvent.Update:
                update_columns = binding.mapping.variant_columns
            else:
                update_columns = ()

            self._db.create_trigger(engine.Trigger(
                name=binding.trigger_names[event],
                table=binding.variant,
                events=frozenset({event}),
                timing=binding.get_trigger_timing(event),
                procedure=propagate,
                args=(descriptor,),
                update_columns=update_columns,
            ))

    async def get_bindings(
        self,
        *,
        union: Optional[s_rel.RelationName] = None,
        variant: Optional[s_rel.RelationName] = None,
    ) -> Sequence[s_bindings.Binding]:
        found: List[s_bindings.Binding] = []
        seen: Set[s_rel.RelationName] = set()

        for trigger in self._db.iter_triggers():
            if trigger.procedure is not propagate or not trigger.args:
                continue
            mapping = s_bindings.ColumnMapping.from_json(trigger.args[0])
            if mapping.variant in seen:
                continue
            if union is not None and mapping.union != union:
                continue
            if variant is not None and mapping.variant != variant:
                continue
            seen.add(mapping.variant)
            found.append(s_bindings.Binding.create(mapping))

        return found

    async def fetch_keys(
        self,
        name: s_rel.RelationName,
        columns: Sequence[str],
    ) -> Set[Tuple[Any, ...]]:
        return {
            tuple(row[c] for c in columns)
            for row in self._db.rows(name)
        }

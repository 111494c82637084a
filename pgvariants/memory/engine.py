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


"""A small transactional relational store.

The store provides, at the application layer, what a binding needs
from a database engine: primary key uniqueness, referential actions
that cascade key updates and deletes from a referenced table to the
rows referencing it, foreign keys checked at statement end or at
commit, and row triggers fired before or after a row changes.

All state lives in persistent maps, so a transaction or statement
snapshot is a single reference and rolling back is restoring it.
"""

from __future__ import annotations
from typing import (
    Any,
    Callable,
    Dict,
    FrozenSet,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Tuple,
    TypeAlias,
    Union,
)

import contextlib
import dataclasses
import logging

import immutables

from pgvariants import defines
from pgvariants import errors
from pgvariants.common import enum as s_enum
from pgvariants.schema import relations as s_rel


logger = logging.getLogger('pgvariants.memory')


Key: TypeAlias = Tuple[Any, ...]
Row: TypeAlias = immutables.Map
TableRef: TypeAlias = Union[str, Sequence[str]]


@dataclasses.dataclass(frozen=True)
class ForeignKey:
    name: str
    table: s_rel.RelationName
    columns: Tuple[str, ...]
    ref_table: s_rel.RelationName
    ref_columns: Tuple[str, ...]
    on_update: s_enum.ReferentialAction = s_enum.ReferentialAction.NoAction
    on_delete: s_enum.ReferentialAction = s_enum.ReferentialAction.NoAction
    deferrable: bool = False
    deferred: bool = False

    def __post_init__(self) -> None:
        if self.deferred and not self.deferrable:
            raise ValueError(
                'only deferrable constraints can be initially deferred')


@dataclasses.dataclass(frozen=True)
class TriggerData:
    trigger: Trigger
    event: s_enum.TriggerEvent
    old: Optional[Row]
    new: Optional[Row]

    @property
    def args(self) -> Tuple[str, ...]:
        return self.trigger.args


Procedure: TypeAlias = Callable[['Database', TriggerData], None]


@dataclasses.dataclass(frozen=True)
class Trigger:
    name: str
    table: s_rel.RelationName
    events: FrozenSet[s_enum.TriggerEvent]
    timing: s_enum.TriggerTiming
    procedure: Procedure
    args: Tuple[str, ...] = ()
    update_columns: Tuple[str, ...] = ()

    def fires_on(
        self,
        event: s_enum.TriggerEvent,
        timing: s_enum.TriggerTiming,
        target_columns: Iterable[str] = (),
    ) -> bool:
        if event not in self.events or timing is not self.timing:
            return False
        if event is s_enum.TriggerEvent.Update and self.update_columns:
            # Like UPDATE OF: fires when a listed column is assigned,
            # whether or not its value changes.
            return not set(self.update_columns).isdisjoint(target_columns)
        return True


@dataclasses.dataclass(frozen=True)
class Table:
    relation: s_rel.Relation
    rows: immutables.Map = immutables.Map()
    foreign_keys: immutables.Map = immutables.Map()
    triggers: immutables.Map = immutables.Map()

    @property
    def name(self) -> s_rel.RelationName:
        return self.relation.name

    @property
    def primary_key(self) -> Tuple[str, ...]:
        return self.relation.primary_key

    def key_of(self, row: Mapping[str, Any]) -> Key:
        return tuple(row[c] for c in self.relation.primary_key)


def _format_key(columns: Sequence[str], values: Sequence[Any]) -> str:
    return 'Key ({})=({})'.format(
        ', '.join(columns), ', '.join(repr(v) for v in values))


class Database:

    def __init__(
        self,
        *,
        default_schema: str = defines.DEFAULT_SCHEMA,
    ) -> None:
        self._tables: immutables.Map = immutables.Map()
        self._default_schema = default_schema
        self._xact_depth = 0
        self._stmt_depth = 0
        self._immediate = False

    @property
    def default_schema(self) -> str:
        return self._default_schema

    def _name(self, name: TableRef) -> s_rel.RelationName:
        return s_rel.parse_name(name, default_schema=self._default_schema)

    def _get_table(self, name: s_rel.RelationName) -> Table:
        try:
            return self._tables[name]
        except KeyError:
            raise errors.MetadataError(
                f'relation {s_rel.display_name(name)} does not exist'
            ) from None

    def _put_table(self, table: Table) -> None:
        self._tables = self._tables.set(table.name, table)

    #
    # Schema definition
    #

    def create_table(
        self,
        name: TableRef,
        columns: Iterable[Tuple[str, str]],
        primary_key: Iterable[str] = (),
    ) -> s_rel.Relation:
        qname = self._name(name)
        relation = s_rel.Relation.from_columns(qname, columns, primary_key)

        seen: Set[str] = set()
        for col in relation.columns:
            if col.name in seen:
                raise errors.NamingConflict(
                    f'column {col.name!r} specified more than once')
            seen.add(col.name)
        if relation.primary_key:
            # Fails on primary key columns that are not columns.
            relation.get_primary_key()

        with self._statement():
            if qname in self._tables:
                raise errors.NamingConflict(
                    f'relation {s_rel.display_name(qname)} already exists')
            self._put_table(Table(relation=relation))

        logger.debug('created table %s', s_rel.display_name(qname))
        return relation

    def has_table(self, name: TableRef) -> bool:
        return self._name(name) in self._tables

    def get_relation(self, name: TableRef) -> s_rel.Relation:
        return self._get_table(self._name(name)).relation

    def add_foreign_key(self, fkey: ForeignKey) -> None:
        with self._statement():
            table = self._get_table(fkey.table)
            ref_table = self._get_table(fkey.ref_table)

            if fkey.name in table.foreign_keys:
                raise errors.NamingConflict(
                    f'constraint {fkey.name!r} for relation '
                    f'{s_rel.display_name(table.name)} already exists')

            self._check_reference(table, ref_table, fkey)

            self._put_table(dataclasses.replace(
                table,
                foreign_keys=table.foreign_keys.set(fkey.name, fkey),
            ))

            # Rows already present are validated right away,
            # regardless of deferral.
            self._check_foreign_key(fkey)

        logger.debug('added foreign key %s on %s', fkey.name,
                     s_rel.display_name(fkey.table))

    def _check_reference(
        self,
        table: Table,
        ref_table: Table,
        fkey: ForeignKey,
    ) -> None:
        if len(fkey.columns) != len(fkey.ref_columns):
            raise errors.ConstraintViolation(
                f'number of referencing and referenced columns for '
                f'foreign key {fkey.name!r} disagree')

        for colname, ref_colname in zip(fkey.columns, fkey.ref_columns):
            col = table.relation.get_column(colname)
            ref_col = ref_table.relation.get_column(ref_colname)
            if col is None or ref_col is None:
                missing = colname if col is None else ref_colname
                raise errors.MetadataError(
                    f'column {missing!r} referenced in foreign key '
                    f'{fkey.name!r} does not exist')
            if col.normalized_type != ref_col.normalized_type:
                raise errors.ConstraintViolation(
                    f'foreign key constraint {fkey.name!r} cannot be '
                    f'implemented',
                    details=(
                        f'key columns {colname!r} and {ref_colname!r} are '
                        f'of incompatible types: {col.type} and '
                        f'{ref_col.type}'
                    ),
                )

        if sorted(fkey.ref_columns) != sorted(ref_table.primary_key):
            raise errors.ConstraintViolation(
                f'there is no unique constraint matching given keys for '
                f'referenced table {s_rel.display_name(ref_table.name)}')

    def get_foreign_key(
        self,
        table: TableRef,
        name: str,
    ) -> Optional[ForeignKey]:
        return self._get_table(self._name(table)).foreign_keys.get(name)

    def create_trigger(self, trigger: Trigger) -> None:
        with self._statement():
            table = self._get_table(trigger.table)
            if trigger.name in table.triggers:
                raise errors.NamingConflict(
                    f'trigger {trigger.name!r} for relation '
                    f'{s_rel.display_name(table.name)} already exists')
            for colname in trigger.update_columns:
                if table.relation.get_column(colname) is None:
                    raise errors.MetadataError(
                        f'column {colname!r} of relation '
                        f'{s_rel.display_name(table.name)} does not exist')

            self._put_table(dataclasses.replace(
                table,
                triggers=table.triggers.set(trigger.name, trigger),
            ))

        logger.debug('created trigger %s on %s', trigger.name,
                     s_rel.display_name(trigger.table))

    def get_trigger(self, table: TableRef, name: str) -> Optional[Trigger]:
        return self._get_table(self._name(table)).triggers.get(name)

    def iter_triggers(self) -> Iterator[Trigger]:
        for name in sorted(self._tables.keys()):
            table = self._tables[name]
            for trigger_name in sorted(table.triggers.keys()):
                yield table.triggers[trigger_name]

    #
    # Transactions
    #

    @property
    def in_transaction(self) -> bool:
        return self._xact_depth > 0

    @contextlib.contextmanager
    def transaction(self) -> Iterator[Database]:
        """Run the enclosed block atomically.

        Nested blocks behave as savepoints.  Deferred foreign keys are
        checked when the outermost block exits; a violation rolls the
        whole transaction back.
        """
        snapshot = self._tables
        top = self._xact_depth == 0
        self._xact_depth += 1
        try:
            yield self
            if top:
                self._check_foreign_keys(include_deferred=True)
        except BaseException:
            self._tables = snapshot
            if top:
                logger.debug('transaction rolled back')
            raise
        finally:
            self._xact_depth -= 1
            if top:
                self._immediate = False

    def set_constraints_immediate(self) -> None:
        """Check deferred foreign keys now and after every statement."""
        if not self.in_transaction:
            return
        self._immediate = True
        self._check_foreign_keys(include_deferred=True)

    @contextlib.contextmanager
    def _statement(self) -> Iterator[None]:
        if not self._xact_depth:
            with self.transaction():
                with self._statement():
                    yield
            return

        snapshot = self._tables
        self._stmt_depth += 1
        try:
            yield
            if self._stmt_depth == 1:
                self._check_foreign_keys(include_deferred=self._immediate)
        except BaseException:
            self._tables = snapshot
            raise
        finally:
            self._stmt_depth -= 1

    def _check_foreign_keys(self, *, include_deferred: bool) -> None:
        for table in self._tables.values():
            for fkey in table.foreign_keys.values():
                if fkey.deferred and not include_deferred:
                    continue
                self._check_foreign_key(fkey)

    def _check_foreign_key(self, fkey: ForeignKey) -> None:
        table = self._get_table(fkey.table)
        ref_table = self._get_table(fkey.ref_table)
        for row in table.rows.values():
            values = tuple(row[c] for c in fkey.columns)
            if any(v is None for v in values):
                continue
            ref_values = dict(zip(fkey.ref_columns, values))
            if ref_table.key_of(ref_values) not in ref_table.rows:
                raise errors.ForeignKeyViolation(
                    f'insert or update on table '
                    f'{s_rel.display_name(table.name)} violates foreign '
                    f'key constraint {fkey.name!r}',
                    details=(
                        f'{_format_key(fkey.columns, values)} is not '
                        f'present in table '
                        f'{s_rel.display_name(ref_table.name)}.'
                    ),
                )

    #
    # Data manipulation
    #

    def insert(self, table: TableRef, values: Mapping[str, Any]) -> None:
        with self._statement():
            self._insert_row(self._name(table), values)

    def update(
        self,
        table: TableRef,
        key: Any,
        values: Mapping[str, Any],
    ) -> bool:
        name = self._name(table)
        with self._statement():
            return self._update_row(
                name, self._coerce_key(name, key), values)

    def delete(self, table: TableRef, key: Any) -> bool:
        name = self._name(table)
        with self._statement():
            return self._delete_row(name, self._coerce_key(name, key))

    def update_where(
        self,
        table: TableRef,
        match: Mapping[str, Any],
        values: Mapping[str, Any],
    ) -> int:
        name = self._name(table)
        with self._statement():
            return self._update_where(name, match, values)

    def delete_where(self, table: TableRef, match: Mapping[str, Any]) -> int:
        name = self._name(table)
        with self._statement():
            return self._delete_where(name, match)

    def get(self, table: TableRef, key: Any) -> Optional[Dict[str, Any]]:
        name = self._name(table)
        row = self._get_table(name).rows.get(self._coerce_key(name, key))
        return dict(row) if row is not None else None

    def rows(self, table: TableRef) -> List[Dict[str, Any]]:
        tab = self._get_table(self._name(table))
        return [dict(tab.rows[k]) for k in sorted(tab.rows.keys(), key=repr)]

    def keys(self, table: TableRef) -> Set[Key]:
        return set(self._get_table(self._name(table)).rows.keys())

    def _coerce_key(self, name: s_rel.RelationName, key: Any) -> Key:
        pk = self._get_table(name).primary_key
        if not pk:
            raise errors.MetadataError(
                f'relation {s_rel.display_name(name)} has no primary key')
        if not isinstance(key, tuple):
            key = (key,)
        if len(key) != len(pk):
            raise errors.InternalError(
                f'expected a key of {len(pk)} values for '
                f'{s_rel.display_name(name)}, got {len(key)}')
        return key

    def _check_columns(self, table: Table, columns: Iterable[str]) -> None:
        for colname in columns:
            if table.relation.get_column(colname) is None:
                raise errors.MetadataError(
                    f'column {colname!r} of relation '
                    f'{s_rel.display_name(table.name)} does not exist')

    def _check_key(self, table: Table, key: Key, *, old: Key = ()) -> None:
        if any(v is None for v in key):
            raise errors.ConstraintViolation(
                f'null value in primary key of relation '
                f'{s_rel.display_name(table.name)}')
        if key != old and key in table.rows:
            raise errors.UniqueViolation(
                f'duplicate key value violates primary key of relation '
                f'{s_rel.display_name(table.name)}',
                details=(
                    f'{_format_key(table.primary_key, key)} '
                    f'already exists.'
                ),
            )

    def _fire(
        self,
        name: s_rel.RelationName,
        event: s_enum.TriggerEvent,
        timing: s_enum.TriggerTiming,
        *,
        old: Optional[Row] = None,
        new: Optional[Row] = None,
        target_columns: Iterable[str] = (),
    ) -> None:
        table = self._get_table(name)
        # Triggers fire in name order.
        for trigger_name in sorted(table.triggers.keys()):
            trigger = table.triggers[trigger_name]
            if trigger.fires_on(event, timing, target_columns):
                trigger.procedure(
                    self, TriggerData(trigger, event, old=old, new=new))

    def _referencing(
        self,
        name: s_rel.RelationName,
    ) -> List[ForeignKey]:
        return [
            fkey
            for table in self._tables.values()
            for fkey in table.foreign_keys.values()
            if fkey.ref_table == name
        ]

    def _insert_row(
        self,
        name: s_rel.RelationName,
        values: Mapping[str, Any],
    ) -> None:
        table = self._get_table(name)
        if not table.primary_key:
            raise errors.MetadataError(
                f'relation {s_rel.display_name(name)} has no primary key')
        self._check_columns(table, values.keys())
        row = immutables.Map(
            {c.name: values.get(c.name) for c in table.relation.columns})

        self._fire(name, s_enum.TriggerEvent.Insert,
                   s_enum.TriggerTiming.Before, new=row)

        table = self._get_table(name)
        key = table.key_of(row)
        self._check_key(table, key)
        self._put_table(dataclasses.replace(
            table, rows=table.rows.set(key, row)))

        self._fire(name, s_enum.TriggerEvent.Insert,
                   s_enum.TriggerTiming.After, new=row)

    def _update_row(
        self,
        name: s_rel.RelationName,
        key: Key,
        values: Mapping[str, Any],
    ) -> bool:
        table = self._get_table(name)
        self._check_columns(table, values.keys())
        old = table.rows.get(key)
        if old is None:
            return False
        new = old.update(values)

        self._fire(name, s_enum.TriggerEvent.Update,
                   s_enum.TriggerTiming.Before,
                   old=old, new=new, target_columns=values.keys())

        table = self._get_table(name)
        if table.rows.get(key) is not old:
            raise errors.InternalError(
                f'row of {s_rel.display_name(name)} to be updated was '
                f'already modified by an operation triggered by the '
                f'current command')

        new_key = table.key_of(new)
        self._check_key(table, new_key, old=key)
        self._put_table(dataclasses.replace(
            table, rows=table.rows.delete(key).set(new_key, new)))

        for fkey in self._referencing(name):
            self._apply_update_action(fkey, old, new)

        self._fire(name, s_enum.TriggerEvent.Update,
                   s_enum.TriggerTiming.After,
                   old=old, new=new, target_columns=values.keys())
        return True

    def _delete_row(self, name: s_rel.RelationName, key: Key) -> bool:
        table = self._get_table(name)
        old = table.rows.get(key)
        if old is None:
            return False

        self._fire(name, s_enum.TriggerEvent.Delete,
                   s_enum.TriggerTiming.Before, old=old)

        table = self._get_table(name)
        if table.rows.get(key) is not old:
            raise errors.InternalError(
                f'row of {s_rel.display_name(name)} to be deleted was '
                f'already modified by an operation triggered by the '
                f'current command')

        self._put_table(dataclasses.replace(
            table, rows=table.rows.delete(key)))

        for fkey in self._referencing(name):
            self._apply_delete_action(fkey, old)

        self._fire(name, s_enum.TriggerEvent.Delete,
                   s_enum.TriggerTiming.After, old=old)
        return True

    def _find(
        self,
        name: s_rel.RelationName,
        match: Mapping[str, Any],
    ) -> List[Key]:
        table = self._get_table(name)
        self._check_columns(table, match.keys())
        return [
            key for key, row in table.rows.items()
            if all(row[c] == v for c, v in match.items())
        ]

    def _update_where(
        self,
        name: s_rel.RelationName,
        match: Mapping[str, Any],
        values: Mapping[str, Any],
    ) -> int:
        return sum(
            self._update_row(name, key, values)
            for key in self._find(name, match)
        )

    def _delete_where(
        self,
        name: s_rel.RelationName,
        match: Mapping[str, Any],
    ) -> int:
        return sum(
            self._delete_row(name, key)
            for key in self._find(name, match)
        )

    def _restrict(self, fkey: ForeignKey, match: Mapping[str, Any]) -> None:
        if self._find(fkey.table, match):
            raise errors.ForeignKeyViolation(
                f'update or delete on table '
                f'{s_rel.display_name(fkey.ref_table)} violates foreign '
                f'key constraint {fkey.name!r} on table '
                f'{s_rel.display_name(fkey.table)}',
                details=(
                    f'{_format_key(tuple(match), tuple(match.values()))} '
                    f'is still referenced.'
                ),
            )

    def _apply_update_action(
        self,
        fkey: ForeignKey,
        old: Row,
        new: Row,
    ) -> None:
        old_ref = tuple(old[c] for c in fkey.ref_columns)
        new_ref = tuple(new[c] for c in fkey.ref_columns)
        if old_ref == new_ref:
            return

        match = dict(zip(fkey.columns, old_ref))
        action = fkey.on_update
        if action is s_enum.ReferentialAction.Cascade:
            self._update_where(
                fkey.table, match, dict(zip(fkey.columns, new_ref)))
        elif action is s_enum.ReferentialAction.SetNull:
            self._update_where(
                fkey.table, match, dict.fromkeys(fkey.columns))
        elif action is s_enum.ReferentialAction.Restrict:
            self._restrict(fkey, match)
        # NO ACTION is covered by the end of statement or commit check.

    def _apply_delete_action(self, fkey: ForeignKey, old: Row) -> None:
        old_ref = tuple(old[c] for c in fkey.ref_columns)
        match = dict(zip(fkey.columns, old_ref))
        action = fkey.on_delete
        if action is s_enum.ReferentialAction.Cascade:
            self._delete_where(fkey.table, match)
        elif action is s_enum.ReferentialAction.SetNull:
            self._update_where(
                fkey.table, match, dict.fromkeys(fkey.columns))
        elif action is s_enum.ReferentialAction.Restrict:
            self._restrict(fkey, match)

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

import textwrap
from typing import (
    Sequence,
    TypeAlias,
)

from pgvariants.common import enum as s_enum

from ..common import qname as qn
from ..common import quote_col as qc
from ..common import quote_literal as ql

from . import base
from . import constraints
from . import ddl


TableName: TypeAlias = tuple[str, str]
ColumnName: TypeAlias = str


class TableConstraint(constraints.Constraint):
    """A constraint declared on a table rather than on a column."""


class ForeignKey(TableConstraint):
    def __init__(
        self,
        table_name: TableName,
        constraint_name: str,
        columns: Sequence[ColumnName],
        *,
        ref_table_name: TableName,
        ref_columns: Sequence[ColumnName],
        on_update: s_enum.ReferentialAction = (
            s_enum.ReferentialAction.NoAction),
        on_delete: s_enum.ReferentialAction = (
            s_enum.ReferentialAction.NoAction),
        deferrable: bool = False,
        deferred: bool = False,
    ) -> None:
        super().__init__(table_name, constraint_name=constraint_name)
        if len(columns) != len(ref_columns):
            raise ValueError(
                'foreign key and referenced key must have the same arity')
        if deferred and not deferrable:
            raise ValueError(
                'only deferrable constraints can be initially deferred')

        self.columns = columns
        self.ref_table_name = ref_table_name
        self.ref_columns = ref_columns
        self.on_update = on_update
        self.on_delete = on_delete
        self.deferrable = deferrable
        self.deferred = deferred

    def constraint_code(self, block: base.PLBlock) -> str:
        cols = ', '.join(qc(c) for c in self.columns)
        ref_cols = ', '.join(qc(c) for c in self.ref_columns)
        code = (
            f'FOREIGN KEY ({cols}) '
            f'REFERENCES {qn(*self.ref_table_name)} ({ref_cols}) '
            f'ON UPDATE {self.on_update} ON DELETE {self.on_delete}'
        )
        if self.deferrable:
            code += ' DEFERRABLE'
            if self.deferred:
                code += ' INITIALLY DEFERRED'
        return code

    def __repr__(self) -> str:
        return '<{mod}.{cls} {name} ({cols}) -> {ref} ({ref_cols})>'.format(
            mod=self.__class__.__module__,
            cls=self.__class__.__name__,
            name=self.constraint_name(quote=False),
            cols=', '.join(self.columns),
            ref=qn(*self.ref_table_name),
            ref_cols=', '.join(self.ref_columns),
        )


class TableConstraintExists(base.Condition):
    def __init__(self, table_name: TableName, constraint_name: str):
        self.table_name = table_name
        self.constraint_name = constraint_name

    def code(self) -> str:
        return textwrap.dedent(f'''\
            SELECT
                True
            FROM
                pg_catalog.pg_constraint c
                INNER JOIN pg_catalog.pg_class t
                    ON c.conrelid = t.oid
                INNER JOIN pg_catalog.pg_namespace ns
                    ON t.relnamespace = ns.oid
            WHERE
                conname = {ql(self.constraint_name)}
                AND nspname = {ql(self.table_name[0])}
                AND relname = {ql(self.table_name[1])}
        ''')


class AlterTable(ddl.DDLOperation, base.CompositeCommandGroup):
    def __init__(self, name: TableName) -> None:
        base.CompositeCommandGroup.__init__(self)
        self.name = name

    add_operation = base.CompositeCommandGroup.add_command

    def prefix_code(self) -> str:
        return f'ALTER TABLE {qn(*self.name)}'

    def __repr__(self) -> str:
        return '<%s.%s %s>' % (
            self.__class__.__module__, self.__class__.__name__, self.name)


class AlterTableAddConstraint(ddl.DDLOperation):
    def __init__(self, constraint: TableConstraint):
        super().__init__()
        self.constraint = constraint

    def code_with_block(self, block: base.PLBlock) -> str:
        code = 'ADD '
        name = self.constraint.constraint_name()
        if name:
            code += f'CONSTRAINT {name} '

        return code + self.constraint.constraint_code(block)

    def __repr__(self) -> str:
        return '<%s.%s %r>' % (
            self.__class__.__module__, self.__class__.__name__,
            self.constraint)

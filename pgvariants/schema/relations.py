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

"""Relations, columns and primary keys as seen by the binding machinery."""

from __future__ import annotations
from typing import (
    Iterable,
    Optional,
    Sequence,
    Tuple,
    TypeAlias,
)

import dataclasses

from pgvariants import defines
from pgvariants import errors


RelationName: TypeAlias = Tuple[str, str]


# Spellings that name the same type.
_TYPE_ALIASES = {
    'int': 'integer',
    'int4': 'integer',
    'int2': 'smallint',
    'int8': 'bigint',
    'serial': 'integer',
    'bigserial': 'bigint',
    'smallserial': 'smallint',
    'float4': 'real',
    'float8': 'double precision',
    'float': 'double precision',
    'bool': 'boolean',
    'varchar': 'character varying',
    'char': 'character',
    'bpchar': 'character',
    'decimal': 'numeric',
    'timestamptz': 'timestamp with time zone',
    'timestamp': 'timestamp without time zone',
}


def normalize_type(type_name: str) -> str:
    """Return a canonical spelling of a column type name."""
    norm = ' '.join(type_name.lower().split())
    param = ''
    if '(' in norm:
        norm, param = norm.split('(', 1)
        norm = norm.rstrip()
        param = '(' + param.replace(' ', '')
    return _TYPE_ALIASES.get(norm, norm) + param


def parse_name(
    name: str | Sequence[str],
    *,
    default_schema: str = defines.DEFAULT_SCHEMA,
) -> RelationName:
    if isinstance(name, str):
        parts = name.split('.')
    else:
        parts = list(name)

    if len(parts) == 1:
        return (default_schema, parts[0])
    elif len(parts) == 2 and all(parts):
        return (parts[0], parts[1])
    else:
        raise errors.MetadataError(
            f'invalid relation name: {name!r}',
            hint='use "table" or "schema.table"')


def display_name(name: RelationName) -> str:
    return '.'.join(name)


@dataclasses.dataclass(frozen=True)
class Column:
    name: str
    type: str

    @property
    def normalized_type(self) -> str:
        return normalize_type(self.type)


@dataclasses.dataclass(frozen=True)
class PrimaryKey:
    relation: RelationName
    columns: Tuple[Column, ...]

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(c.name for c in self.columns)

    @property
    def types(self) -> Tuple[str, ...]:
        return tuple(c.normalized_type for c in self.columns)

    def __len__(self) -> int:
        return len(self.columns)


@dataclasses.dataclass(frozen=True)
class Relation:
    name: RelationName
    columns: Tuple[Column, ...]
    primary_key: Tuple[str, ...]

    def get_column(self, name: str) -> Optional[Column]:
        for col in self.columns:
            if col.name == name:
                return col
        return None

    def get_primary_key(self) -> PrimaryKey:
        if not self.primary_key:
            raise errors.MetadataError(
                f'relation {display_name(self.name)} has no primary key')

        cols = []
        for colname in self.primary_key:
            col = self.get_column(colname)
            if col is None:
                raise errors.MetadataError(
                    f'primary key column {colname!r} is not a column '
                    f'of {display_name(self.name)}')
            cols.append(col)
        return PrimaryKey(relation=self.name, columns=tuple(cols))

    @classmethod
    def from_columns(
        cls,
        name: RelationName,
        columns: Iterable[Tuple[str, str]],
        primary_key: Iterable[str],
    ) -> Relation:
        return cls(
            name=name,
            columns=tuple(Column(n, t) for n, t in columns),
            primary_key=tuple(primary_key),
        )


def check_compatible(union_pk: PrimaryKey, variant_pk: PrimaryKey) -> None:
    """Check that *variant_pk* can reference *union_pk* positionally.

    Column names are irrelevant; arity and the type at every ordinal
    position must agree.
    """
    union = display_name(union_pk.relation)
    variant = display_name(variant_pk.relation)

    if len(union_pk) != len(variant_pk):
        raise errors.IncompatibilityError(
            f'cannot bind {variant} to {union}: primary key arity '
            f'differs ({len(variant_pk)} != {len(union_pk)})',
            details=(
                f'{union} key: ({", ".join(union_pk.names)}); '
                f'{variant} key: ({", ".join(variant_pk.names)})'
            ),
        )

    for i, (ucol, vcol) in enumerate(
        zip(union_pk.columns, variant_pk.columns), 1
    ):
        if ucol.normalized_type != vcol.normalized_type:
            raise errors.IncompatibilityError(
                f'cannot bind {variant} to {union}: primary key column '
                f'#{i} has type {vcol.type}, expected {ucol.type}',
                hint=f'{variant}.{vcol.name} must have the same type as '
                     f'{union}.{ucol.name}',
            )

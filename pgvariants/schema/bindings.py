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
    Dict,
    Mapping,
    Tuple,
)

import base64
import dataclasses
import hashlib
import json

import immutables

from pgvariants import defines
from pgvariants import errors
from pgvariants.common import enum as s_enum

from . import relations as s_rel


def _shorten_name(name: str) -> str:
    hashed = base64.b64encode(
        hashlib.md5(name.encode(), usedforsecurity=False).digest()
    ).decode().rstrip('=')

    # The limit is in bytes; a multibyte character cut at the start of
    # the tail is dropped.
    tail = name.encode()[-(defines.MAX_IDENTIFIER_LENGTH - 1 - len(hashed)):]
    return hashed + ':' + tail.decode(errors='ignore')


def backend_name(name: str) -> str:
    """Make *name* fit into the backend identifier length limit.

    Names that already fit are returned unchanged; longer ones are
    prefixed with a hash of the full name and keep their tail, so the
    event suffix of a trigger name survives.
    """
    if len(name.encode()) <= defines.MAX_IDENTIFIER_LENGTH:
        return name
    return _shorten_name(name)


def get_trigger_name(
    union: s_rel.RelationName,
    variant: s_rel.RelationName,
    event: s_enum.TriggerEvent,
) -> str:
    base = union[1] + defines.TRIGGER_NAME_SEPARATOR + variant[1]
    return backend_name(base + defines.TRIGGER_SUFFIXES[event])


def get_constraint_name(
    union: s_rel.RelationName,
    variant: s_rel.RelationName,
) -> str:
    base = variant[1] + defines.TRIGGER_NAME_SEPARATOR + union[1]
    return backend_name(base + defines.FOREIGN_KEY_SUFFIX)


# Timing of the reverse-propagation hooks.  Referential actions run
# as soon as the statement issuing them completes, even for deferrable
# constraints, so the update and delete hooks must fire after the
# variant row has been changed, or the cascade they provoke would
# modify the row the outer statement is working on.
HOOK_TIMINGS: Mapping[s_enum.TriggerEvent, s_enum.TriggerTiming] = {
    s_enum.TriggerEvent.Insert: s_enum.TriggerTiming.Before,
    s_enum.TriggerEvent.Update: s_enum.TriggerTiming.After,
    s_enum.TriggerEvent.Delete: s_enum.TriggerTiming.After,
}


@dataclasses.dataclass(frozen=True)
class ColumnMapping:
    """Positional correspondence between union and variant key columns."""

    union: s_rel.RelationName
    variant: s_rel.RelationName
    pairs: Tuple[Tuple[str, str], ...]

    @classmethod
    def from_keys(
        cls,
        union_pk: s_rel.PrimaryKey,
        variant_pk: s_rel.PrimaryKey,
    ) -> ColumnMapping:
        s_rel.check_compatible(union_pk, variant_pk)
        return cls(
            union=union_pk.relation,
            variant=variant_pk.relation,
            pairs=tuple(zip(union_pk.names, variant_pk.names)),
        )

    @property
    def union_columns(self) -> Tuple[str, ...]:
        return tuple(u for u, _ in self.pairs)

    @property
    def variant_columns(self) -> Tuple[str, ...]:
        return tuple(v for _, v in self.pairs)

    def to_union_key(self, row: Mapping[str, Any]) -> Tuple[Any, ...]:
        return tuple(row[v] for _, v in self.pairs)

    def to_union_row(self, row: Mapping[str, Any]) -> Dict[str, Any]:
        return {u: row[v] for u, v in self.pairs}

    def to_dict(self) -> Dict[str, Any]:
        return {
            'union': list(self.union),
            'variant': list(self.variant),
            'columns': [list(p) for p in self.pairs],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(',', ':'))

    @classmethod
    def from_json(cls, data: str | bytes) -> ColumnMapping:
        try:
            obj = json.loads(data)
            return cls(
                union=(obj['union'][0], obj['union'][1]),
                variant=(obj['variant'][0], obj['variant'][1]),
                pairs=tuple((u, v) for u, v in obj['columns']),
            )
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise errors.InternalError(
                f'malformed column mapping descriptor: {data!r}') from e


@dataclasses.dataclass(frozen=True)
class Binding:
    """A variant relation composed into a union relation."""

    mapping: ColumnMapping
    constraint_name: str
    trigger_names: immutables.Map[s_enum.TriggerEvent, str]

    @classmethod
    def create(cls, mapping: ColumnMapping) -> Binding:
        union, variant = mapping.union, mapping.variant
        return cls(
            mapping=mapping,
            constraint_name=get_constraint_name(union, variant),
            trigger_names=immutables.Map({
                event: get_trigger_name(union, variant, event)
                for event in s_enum.TriggerEvent
            }),
        )

    @property
    def union(self) -> s_rel.RelationName:
        return self.mapping.union

    @property
    def variant(self) -> s_rel.RelationName:
        return self.mapping.variant

    def get_trigger_timing(
        self, event: s_enum.TriggerEvent
    ) -> s_enum.TriggerTiming:
        return HOOK_TIMINGS[event]

    def __repr__(self) -> str:
        return '<{cls} {variant} -> {union}>'.format(
            cls=self.__class__.__name__,
            variant=s_rel.display_name(self.variant),
            union=s_rel.display_name(self.union),
        )

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
    Any,
    Mapping,
    Optional,
    Sequence,
    TypeAlias,
)

from pgvariants.common import enum as s_enum

from ..common import qname as qn
from ..common import quote_col as qc
from ..common import quote_ident as qi
from ..common import quote_literal as ql

from . import base
from . import ddl
from . import tables


TriggerName: TypeAlias = str


class TriggerExists(base.Condition):
    def __init__(
        self,
        trigger_name: TriggerName,
        table_name: tables.TableName
    ) -> None:
        self.trigger_name = trigger_name
        self.table_name = table_name

    def code(self) -> str:
        return textwrap.dedent(
            f'''\
            SELECT
                tg.tgname
            FROM
                pg_catalog.pg_trigger tg
                INNER JOIN pg_catalog.pg_class tab
                    ON (tab.oid = tg.tgrelid)
                INNER JOIN pg_catalog.pg_namespace ns
                    ON (ns.oid = tab.relnamespace)
            WHERE
                tab.relname = {ql(self.table_name[1])}
                AND ns.nspname = {ql(self.table_name[0])}
                AND tg.tgname = {ql(self.trigger_name)}
        '''
        )


class Trigger(base.DBObject):
    def __init__(
        self,
        name: TriggerName,
        *,
        table_name: tables.TableName,
        events: tuple[s_enum.TriggerEvent, ...],
        timing: s_enum.TriggerTiming = s_enum.TriggerTiming.After,
        procedure: tuple[str, str],
        procedure_args: Sequence[str] = (),
        update_columns: Sequence[str] = (),
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(metadata=metadata)

        self.name = name
        self.table_name = table_name
        self.events = events
        self.timing = timing
        self.procedure = procedure
        self.procedure_args = tuple(procedure_args)
        self.update_columns = tuple(update_columns)

        if (
            self.update_columns
            and s_enum.TriggerEvent.Update not in self.events
        ):
            raise ValueError(
                'update columns can only be given for UPDATE triggers')

    def get_type(self) -> str:
        return 'TRIGGER'

    def get_id(self) -> str:
        return f'{qi(self.name)} ON {qn(*self.table_name)}'

    def __repr__(self) -> str:
        return '<{mod}.{cls} {name} ON {table_name} {timing} {events}>'.format(
            mod=self.__class__.__module__,
            cls=self.__class__.__name__,
            name=self.name,
            table_name=qn(*self.table_name),
            timing=self.timing,
            events=' OR '.join(self.events),
        )


class CreateTrigger(ddl.CreateObject):
    def __init__(
        self,
        object: Trigger,
        *,
        conditional: bool = False,
        **kwargs: Any,
    ) -> None:
        super().__init__(object, **kwargs)
        self.trigger = object
        if conditional:
            self.neg_conditions.add(
                TriggerExists(self.trigger.name, self.trigger.table_name)
            )

    def _events_code(self) -> str:
        events = []
        for event in self.trigger.events:
            if (
                event is s_enum.TriggerEvent.Update
                and self.trigger.update_columns
            ):
                cols = ', '.join(qc(c) for c in self.trigger.update_columns)
                events.append(f'{event} OF {cols}')
            else:
                events.append(str(event))
        return ' OR '.join(events)

    def code(self) -> str:
        args = ', '.join(ql(a) for a in self.trigger.procedure_args)
        return textwrap.dedent(
            '''\
            CREATE TRIGGER {trigger_name} {timing} {events}
                   ON {table_name}
                   FOR EACH ROW
                   EXECUTE PROCEDURE {procedure}
        '''
        ).format(
            trigger_name=qi(self.trigger.name),
            timing=self.trigger.timing,
            events=self._events_code(),
            table_name=qn(*self.trigger.table_name),
            procedure=f'{qn(*self.trigger.procedure)}({args})',
        )

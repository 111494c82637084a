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
from typing import Sequence

from ..common import qname as qn
from ..common import quote_col as qc

from . import base
from . import tables


class DMLOperation(base.Command):
    pass


class InsertFromSelect(DMLOperation):
    """Copy column values of every row of one table into another."""

    def __init__(
        self,
        table_name: tables.TableName,
        columns: Sequence[str],
        *,
        source_name: tables.TableName,
        source_columns: Sequence[str],
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        if len(columns) != len(source_columns):
            raise ValueError('column lists must have the same length')

        self.table_name = table_name
        self.columns = columns
        self.source_name = source_name
        self.source_columns = source_columns

    def code(self) -> str:
        cols = ', '.join(qc(c) for c in self.columns)
        src_cols = ', '.join(qc(c) for c in self.source_columns)
        return textwrap.dedent(f'''\
            INSERT INTO {qn(*self.table_name)} ({cols})
            SELECT {src_cols} FROM {qn(*self.source_name)}
        ''').strip()

    def __repr__(self):
        return '<pgvariants.dbops.{} {} <- {}>'.format(
            self.__class__.__name__, self.table_name, self.source_name)

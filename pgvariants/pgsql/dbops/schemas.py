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

from ..common import quote_ident as qi

from . import ddl


class CreateSchema(ddl.DDLOperation):
    def __init__(self, name, *, conditional=False):
        super().__init__()
        self.name = name
        self.conditional = conditional

    def code(self) -> str:
        condition = "IF NOT EXISTS " if self.conditional else ''
        return f'CREATE SCHEMA {condition}{qi(self.name)}'

    def __repr__(self):
        return '<pgvariants.dbops.%s %s>' % (
            self.__class__.__name__, self.name)

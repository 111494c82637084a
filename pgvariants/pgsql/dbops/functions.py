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
from typing import Optional, Tuple

from ..common import qname as qn
from ..common import quote_type as qt

from . import base
from . import ddl


class Function(base.DBObject):
    def __init__(
        self,
        name: Tuple[str, ...],
        *,
        returns: str | Tuple[str, ...],
        text: str,
        volatility: str = "volatile",
        language: str = "sql",
        comment: Optional[str] = None,
    ):
        super().__init__()
        self.name = name
        self.returns = returns
        self.text = text
        self.volatility = volatility
        self.language = language
        if comment is not None:
            self.add_metadata('description', comment)

    def get_type(self) -> str:
        return 'FUNCTION'

    def get_id(self) -> str:
        return f'{qn(*self.name)}()'

    def __repr__(self):
        return '<{} {} at 0x{}>'.format(
            self.__class__.__name__, self.name, id(self))


class CreateFunction(ddl.CreateObject):
    def __init__(
        self, function: Function, *, or_replace: bool = False, **kwargs
    ):
        super().__init__(function, **kwargs)
        self.function = function
        self.or_replace = or_replace

    def code(self) -> str:
        code = textwrap.dedent('''
            CREATE {replace} FUNCTION {name}()
            RETURNS {returns}
            AS $____funcbody____$
            {text}
            $____funcbody____$
            LANGUAGE {lang} {volatility};
        ''').format_map({
            'replace': 'OR REPLACE' if self.or_replace else '',
            'name': qn(*self.function.name),
            'returns': qt(self.function.returns),
            'lang': self.function.language,
            'volatility': self.function.volatility.upper(),
            'text': textwrap.dedent(self.function.text).strip(),
        })
        return code.strip()

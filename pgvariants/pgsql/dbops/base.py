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
    Iterable,
    Iterator,
    List,
    Mapping,
    MutableSequence,
    Optional,
    Set,
)

import textwrap


class SQLBlock:
    """A sequence of SQL statements sent to the server as one script."""

    commands: list[str | PLBlock]

    def __init__(self) -> None:
        self.commands = []

    def add_block(self) -> PLBlock:
        block = PLTopBlock()
        self.add_command(block)
        return block

    def add_command(self, stmt: str | PLBlock) -> None:
        self.commands.append(stmt)

    def get_statements(self) -> List[str]:
        return [(cmd if isinstance(cmd, str) else cmd.to_string()).rstrip()
                for cmd in self.commands]

    def to_string(self) -> str:
        body = '\n\n'.join(stmt + ';' if stmt[-1] != ';' else stmt
                           for stmt in self.get_statements() if stmt)
        body = body.rstrip()
        if body and body[-1] != ';':
            body += ';'
        return body


class PLBlock(SQLBlock):
    """Statements nested in an anonymous PL/pgSQL code block.

    The statements only run when all of the block's conditions hold.
    """

    conditions: Set[str | Condition]
    neg_conditions: Set[str | Condition]

    def __init__(self) -> None:
        super().__init__()
        self.conditions = set()
        self.neg_conditions = set()

    def add_block(self) -> PLBlock:
        block = PLBlock()
        self.add_command(block)
        return block

    def _condition_clause(self) -> str:
        exprs = [_condition_expr(c) for c in self.conditions]
        exprs.extend(f'NOT {_condition_expr(c)}' for c in self.neg_conditions)
        return '\n    AND'.join(
            f'({textwrap.indent(expr, "    ").lstrip()})' for expr in exprs)

    def to_string(self) -> str:
        body = super().to_string()
        if body and (self.conditions or self.neg_conditions):
            body = textwrap.indent(body, '    ')
            body = f'IF {self._condition_clause()}\nTHEN\n{body}\nEND IF;'
        return body


class PLTopBlock(PLBlock):

    def to_string(self) -> str:
        body = super().to_string()
        return f'DO LANGUAGE plpgsql $__$\nBEGIN\n{body}\nEND;\n$__$;'


def _condition_expr(cond: str | Condition) -> str:
    if isinstance(cond, str):
        return cond
    else:
        return f'EXISTS ({cond.code()})'


class Condition:
    """A query whose non-empty result makes a condition true."""

    def code(self) -> str:
        raise NotImplementedError


class Command:

    conditions: Set[str | Condition]
    neg_conditions: Set[str | Condition]

    def __init__(
        self,
        *,
        conditions: Optional[Iterable[str | Condition]] = None,
        neg_conditions: Optional[Iterable[str | Condition]] = None,
    ) -> None:
        self.conditions = set(conditions) if conditions else set()
        self.neg_conditions = set(neg_conditions) if neg_conditions else set()

    def generate(self, block: SQLBlock) -> None:
        self_block = self.generate_self_block(block)
        if self_block is None:
            return

        self.generate_extra(self_block)
        self_block.conditions = self.conditions
        self_block.neg_conditions = self.neg_conditions

    def generate_self_block(self, block: SQLBlock) -> Optional[PLBlock]:
        self_block = block.add_block()
        self_block.add_command(self.code_with_block(self_block))
        return self_block

    def generate_extra(self, block: PLBlock) -> None:
        pass

    def code(self) -> str:
        raise NotImplementedError

    def code_with_block(self, block: PLBlock) -> str:
        return self.code()


class CommandGroup(Command):
    """Commands that run in order, in a block of their own."""

    commands: MutableSequence[Command]

    def __init__(
        self,
        *,
        conditions: Optional[Iterable[str | Condition]] = None,
        neg_conditions: Optional[Iterable[str | Condition]] = None,
    ) -> None:
        super().__init__(conditions=conditions, neg_conditions=neg_conditions)
        self.commands = []

    def add_command(self, cmd: Command) -> None:
        self.commands.append(cmd)

    def add_commands(self, cmds: Iterable[Command]) -> None:
        self.commands.extend(cmds)

    def generate_self_block(self, block: SQLBlock) -> Optional[PLBlock]:
        if not self.commands:
            return None

        self_block = block.add_block()
        for cmd in self.commands:
            cmd.generate(self_block)
        return self_block

    def __iter__(self) -> Iterator[Command]:
        return iter(self.commands)


class CompositeCommandGroup(Command):
    """Commands rendered as the comma-separated clauses of one statement.

    Subclasses supply the statement prefix, e.g. ``ALTER TABLE x``.
    """

    commands: MutableSequence[Command]

    def __init__(self) -> None:
        super().__init__()
        self.commands = []

    def add_command(self, cmd: Command) -> None:
        self.commands.append(cmd)

    def generate_self_block(self, block: SQLBlock) -> Optional[PLBlock]:
        if not self.commands:
            return None

        self_block = block.add_block()
        clauses = [cmd.code_with_block(self_block) for cmd in self.commands]
        self_block.add_command(f'{self.prefix_code()} {", ".join(clauses)}')
        return self_block

    def prefix_code(self) -> str:
        raise NotImplementedError


class DBObject:
    """A database object that can carry a description comment."""

    def __init__(
        self,
        *,
        metadata: Optional[Mapping[str, Any]] = None
    ) -> None:
        self.metadata = dict(metadata) if metadata else None

    def add_metadata(self, key: str, value: Any) -> None:
        if self.metadata is None:
            self.metadata = {}
        self.metadata[key] = value

    def get_type(self) -> str:
        raise NotImplementedError

    def get_id(self) -> str:
        raise NotImplementedError

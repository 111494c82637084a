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

"""Storage capabilities required by the binding protocol.

A backend must provide:

* global key uniqueness across the union's key namespace;
* cascading propagation of union key updates and deletes to the
  variant rows referencing them;
* row hooks on the variant that mirror its key changes into the union.
"""

from __future__ import annotations
from typing import (
    AsyncContextManager,
    Any,
    Optional,
    Sequence,
    Set,
    Tuple,
)

from pgvariants import defines
from pgvariants.schema import bindings as s_bindings
from pgvariants.schema import relations as s_rel


class Backend:

    # Schema that unqualified relation names resolve to.
    default_schema: str = defines.DEFAULT_SCHEMA

    def transaction(self) -> AsyncContextManager[Any]:
        """Return an async context manager enclosing one transaction."""
        raise NotImplementedError

    async def get_primary_key(
        self,
        name: s_rel.RelationName,
    ) -> s_rel.PrimaryKey:
        raise NotImplementedError

    async def trigger_exists(
        self,
        table: s_rel.RelationName,
        trigger_name: str,
    ) -> bool:
        raise NotImplementedError

    async def constraint_exists(
        self,
        table: s_rel.RelationName,
        constraint_name: str,
    ) -> bool:
        raise NotImplementedError

    async def install_constraint(self, binding: s_bindings.Binding) -> None:
        """Add the deferred cascading reference and backfill the union."""
        raise NotImplementedError

    async def install_hooks(self, binding: s_bindings.Binding) -> None:
        """Install the insert, update and delete propagation hooks."""
        raise NotImplementedError

    async def get_bindings(
        self,
        *,
        union: Optional[s_rel.RelationName] = None,
        variant: Optional[s_rel.RelationName] = None,
    ) -> Sequence[s_bindings.Binding]:
        """Reconstruct the bindings recorded in the storage layer."""
        raise NotImplementedError

    async def fetch_keys(
        self,
        name: s_rel.RelationName,
        columns: Sequence[str],
    ) -> Set[Tuple[Any, ...]]:
        raise NotImplementedError

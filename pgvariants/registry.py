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
    Optional,
    Sequence,
    Tuple,
)

import logging

import immutables

from pgvariants import backend as b_backend
from pgvariants import errors
from pgvariants.schema import bindings as s_bindings
from pgvariants.schema import relations as s_rel


logger = logging.getLogger('pgvariants.registry')


class Registry:
    """Owner of the bindings installed through a backend."""

    def __init__(
        self,
        backend: b_backend.Backend,
        *,
        default_schema: Optional[str] = None,
    ) -> None:
        self._backend = backend
        if default_schema is None:
            default_schema = backend.default_schema
        self._default_schema = default_schema
        self._bindings: immutables.Map[
            s_rel.RelationName, s_bindings.Binding] = immutables.Map()

    @property
    def backend(self) -> b_backend.Backend:
        return self._backend

    def _parse_name(self, name: str | Sequence[str]) -> s_rel.RelationName:
        return s_rel.parse_name(name, default_schema=self._default_schema)

    async def bind(
        self,
        union: str | Sequence[str],
        variant: str | Sequence[str],
    ) -> s_bindings.Binding:
        union_name = self._parse_name(union)
        variant_name = self._parse_name(variant)

        try:
            async with self._backend.transaction():
                binding = await self._bind(union_name, variant_name)
        except errors.VariantsError as e:
            logger.debug(
                'binding %s to %s failed: %s',
                s_rel.display_name(variant_name),
                s_rel.display_name(union_name), e)
            raise

        self._bindings = self._bindings.set(variant_name, binding)
        logger.info('bound %s to %s', s_rel.display_name(variant_name),
                    s_rel.display_name(union_name))
        return binding

    async def _bind(
        self,
        union: s_rel.RelationName,
        variant: s_rel.RelationName,
    ) -> s_bindings.Binding:
        if union == variant:
            raise errors.IncompatibilityError(
                f'cannot bind {s_rel.display_name(union)} to itself')

        union_pk = await self._backend.get_primary_key(union)
        variant_pk = await self._backend.get_primary_key(variant)

        mapping = s_bindings.ColumnMapping.from_keys(union_pk, variant_pk)
        binding = s_bindings.Binding.create(mapping)

        await self._check_not_bound(binding)

        await self._backend.install_constraint(binding)
        await self._backend.install_hooks(binding)

        return binding

    async def _check_not_bound(self, binding: s_bindings.Binding) -> None:
        existing = await self._backend.get_bindings(variant=binding.variant)
        if existing:
            raise errors.NamingConflict(
                f'{s_rel.display_name(binding.variant)} is already bound '
                f'to {s_rel.display_name(existing[0].union)}',
                hint='bindings cannot be altered or re-registered',
            )

        for trigger_name in binding.trigger_names.values():
            if await self._backend.trigger_exists(
                binding.variant, trigger_name
            ):
                raise errors.NamingConflict(
                    f'trigger {trigger_name!r} already exists on '
                    f'{s_rel.display_name(binding.variant)}')

        if await self._backend.constraint_exists(
            binding.variant, binding.constraint_name
        ):
            raise errors.NamingConflict(
                f'constraint {binding.constraint_name!r} already exists on '
                f'{s_rel.display_name(binding.variant)}')

    async def load(self) -> Tuple[s_bindings.Binding, ...]:
        """Pick up the bindings already recorded in the storage layer."""
        found = await self._backend.get_bindings()
        self._bindings = self._bindings.update(
            {b.variant: b for b in found})
        return tuple(found)

    def bindings(self) -> Tuple[s_bindings.Binding, ...]:
        return tuple(self._bindings.values())

    def bindings_of(
        self,
        union: str | Sequence[str],
    ) -> Tuple[s_bindings.Binding, ...]:
        union_name = self._parse_name(union)
        return tuple(b for b in self._bindings.values()
                     if b.union == union_name)

    def get_binding(
        self,
        variant: str | Sequence[str],
    ) -> Optional[s_bindings.Binding]:
        return self._bindings.get(self._parse_name(variant))

    async def validate(self, binding: s_bindings.Binding) -> None:
        """Check that *binding* is installed and its union is complete.

        The union's key set must equal the union of the key sets of
        every variant bound to it.
        """
        variant = s_rel.display_name(binding.variant)

        if not await self._backend.constraint_exists(
            binding.variant, binding.constraint_name
        ):
            raise errors.MetadataError(
                f'constraint {binding.constraint_name!r} is missing '
                f'from {variant}')

        for trigger_name in binding.trigger_names.values():
            if not await self._backend.trigger_exists(
                binding.variant, trigger_name
            ):
                raise errors.MetadataError(
                    f'trigger {trigger_name!r} is missing from {variant}')

        async with self._backend.transaction():
            siblings = await self._backend.get_bindings(union=binding.union)
            union_keys = await self._backend.fetch_keys(
                binding.union, binding.mapping.union_columns)

            owned: set = set()
            for sibling in siblings:
                owned |= await self._backend.fetch_keys(
                    sibling.variant, sibling.mapping.variant_columns)

        orphans = union_keys - owned
        missing = owned - union_keys
        if orphans or missing:
            details = []
            if orphans:
                details.append(
                    f'keys without a variant: {sorted(orphans, key=repr)}')
            if missing:
                details.append(
                    f'keys missing from the union: '
                    f'{sorted(missing, key=repr)}')
            raise errors.ConstraintViolation(
                f'{s_rel.display_name(binding.union)} is out of sync '
                f'with its variants',
                details='; '.join(details),
            )


async def bind(
    target,
    union: str | Sequence[str],
    variant: str | Sequence[str],
) -> None:
    """Bind *variant* into the tagged union *union*.

    *target* is either a backend or an asyncpg connection.
    """
    if not isinstance(target, b_backend.Backend):
        from pgvariants.pgsql import backend as pg_backend
        target = pg_backend.PGBackend(target)

    await Registry(target).bind(union, variant)

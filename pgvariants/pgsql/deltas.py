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

"""Schema changes that install a binding on PostgreSQL."""

from __future__ import annotations

from pgvariants import defines
from pgvariants.common import enum as s_enum
from pgvariants.schema import bindings as s_bindings
from pgvariants.schema import relations as s_rel

from . import common
from . import dbops


class InstallConstraint(dbops.CommandGroup):
    """Reference the union from the variant and backfill the union.

    The reference cascades updates and deletes from the union down to
    the variant and is only checked at commit, so a variant row may be
    written before its union counterpart within one transaction.
    """

    def __init__(self, binding: s_bindings.Binding) -> None:
        super().__init__()
        self.binding = binding
        mapping = binding.mapping

        # Adding the reference validates the rows already in the
        # variant, so their keys must reach the union first.
        self.add_command(dbops.InsertFromSelect(
            binding.union,
            mapping.union_columns,
            source_name=binding.variant,
            source_columns=mapping.variant_columns,
        ))

        fkey = dbops.ForeignKey(
            table_name=binding.variant,
            constraint_name=binding.constraint_name,
            columns=mapping.variant_columns,
            ref_table_name=binding.union,
            ref_columns=mapping.union_columns,
            on_update=s_enum.ReferentialAction.Cascade,
            on_delete=s_enum.ReferentialAction.Cascade,
            deferrable=True,
            deferred=True,
        )
        alter = dbops.AlterTable(binding.variant)
        alter.add_operation(dbops.AlterTableAddConstraint(fkey))
        self.add_command(alter)


class SynthesizeHooks(dbops.CommandGroup):
    """Create the insert, update and delete hooks of a binding.

    All three hooks execute the same propagation function; the
    binding's column mapping is passed as the trigger argument.
    """

    def __init__(
        self,
        binding: s_bindings.Binding,
        *,
        function_schema: str = defines.VARIANTS_FUNCTION_SCHEMA,
    ) -> None:
        super().__init__()
        self.binding = binding
        descriptor = binding.mapping.to_json()
        procedure = common.get_propagate_function_name(function_schema)

        for event in s_enum.TriggerEvent:
            if event is s_enum.TriggerEvent.Update:
                update_columns = binding.mapping.variant_columns
            else:
                update_columns = ()

            trigger = dbops.Trigger(
                binding.trigger_names[event],
                table_name=binding.variant,
                events=(event,),
                timing=binding.get_trigger_timing(event),
                procedure=procedure,
                procedure_args=(descriptor,),
                update_columns=update_columns,
                metadata={
                    'description': (
                        f'Propagates {event.lower()}s on '
                        f'{s_rel.display_name(binding.variant)} into '
                        f'{s_rel.display_name(binding.union)}'
                    ),
                },
            )
            self.add_command(dbops.CreateTrigger(trigger))

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

"""Database objects shared by every binding."""

from __future__ import annotations

from pgvariants import defines

from . import common
from . import dbops


class PropagateFunction(dbops.Function):
    """Mirror a variant row's key change into its union relation.

    The only trigger argument is the JSON column mapping descriptor of
    the binding:

        {"union": [schema, table],
         "variant": [schema, table],
         "columns": [[union_column, variant_column], ...]}

    Columns are paired by their ordinal position in the two primary
    keys.  The function only ever writes to the union.
    """

    text = r'''
    DECLARE
        descriptor jsonb := TG_ARGV[0]::jsonb;
        target text;
        target_cols text;
        source_cols text;
        assignments text;
        matches text;
    BEGIN
        target := format(
            '%I.%I',
            descriptor -> 'union' ->> 0,
            descriptor -> 'union' ->> 1
        );

        SELECT
            string_agg(format('%I', m.col ->> 0), ', ' ORDER BY m.pos),
            string_agg(format('n.%I', m.col ->> 1), ', ' ORDER BY m.pos),
            string_agg(
                format('%I = n.%I', m.col ->> 0, m.col ->> 1),
                ', ' ORDER BY m.pos
            ),
            string_agg(
                format('t.%I = o.%I', m.col ->> 0, m.col ->> 1),
                ' AND ' ORDER BY m.pos
            )
        INTO
            target_cols, source_cols, assignments, matches
        FROM
            jsonb_array_elements(descriptor -> 'columns')
                WITH ORDINALITY AS m(col, pos);

        IF TG_OP = 'INSERT' THEN
            EXECUTE format(
                'INSERT INTO %s (%s) SELECT %s FROM (SELECT ($1).*) AS n',
                target, target_cols, source_cols
            ) USING NEW;
            RETURN NEW;
        ELSIF TG_OP = 'UPDATE' THEN
            EXECUTE format(
                'UPDATE %s AS t SET %s '
                'FROM (SELECT ($1).*) AS n, (SELECT ($2).*) AS o '
                'WHERE %s',
                target, assignments, matches
            ) USING NEW, OLD;
            RETURN NEW;
        ELSE
            EXECUTE format(
                'DELETE FROM %s AS t USING (SELECT ($1).*) AS o WHERE %s',
                target, matches
            ) USING OLD;
            RETURN OLD;
        END IF;
    END;
    '''

    def __init__(
        self,
        schema: str = defines.VARIANTS_FUNCTION_SCHEMA,
    ) -> None:
        super().__init__(
            name=common.get_propagate_function_name(schema),
            returns='trigger',
            language='plpgsql',
            volatility='volatile',
            text=self.text,
            comment='Propagates variant key changes into the union relation',
        )


def get_bootstrap_commands(
    schema: str = defines.VARIANTS_FUNCTION_SCHEMA,
) -> dbops.CommandGroup:
    commands = dbops.CommandGroup()
    commands.add_commands([
        dbops.CreateSchema(name=schema, conditional=True),
        dbops.CreateFunction(PropagateFunction(schema), or_replace=True),
    ])
    return commands

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


import json
import unittest

from pgvariants.common import enum as s_enum
from pgvariants.pgsql import common
from pgvariants.pgsql import dbops
from pgvariants.pgsql import deltas
from pgvariants.pgsql import metaschema
from pgvariants.schema import bindings as s_bindings


def _render(command):
    block = dbops.SQLBlock()
    command.generate(block)
    return block.to_string()


def _binding():
    return s_bindings.Binding.create(s_bindings.ColumnMapping(
        union=('public', 'animal'),
        variant=('public', 'cat'),
        pairs=(('id', 'cat_id'),),
    ))


class TestQuoting(unittest.TestCase):

    def test_dbops_quote_01(self):
        self.assertEqual(common.quote_ident('animal'), 'animal')
        self.assertEqual(common.quote_ident('Animal'), '"Animal"')
        self.assertEqual(common.quote_ident('select'), '"select"')
        self.assertEqual(common.quote_ident('1st'), '"1st"')
        self.assertEqual(common.quote_ident('a"b'), '"a""b"')
        self.assertEqual(common.quote_ident('animal:cat/i'),
                         '"animal:cat/i"')
        self.assertEqual(common.quote_ident('x', force=True), '"x"')

    def test_dbops_quote_02(self):
        # Column name keywords only need quoting as column names.
        self.assertEqual(common.quote_ident('char'), 'char')
        self.assertEqual(common.quote_col('char'), '"char"')
        self.assertEqual(common.qname('zoo', 'animal'), 'zoo.animal')
        self.assertEqual(common.quote_cols(('id', 'User')), 'id, "User"')

    def test_dbops_quote_03(self):
        self.assertEqual(common.quote_literal("it's"), "'it''s'")
        self.assertEqual(
            common.quote_type('character varying(10)'),
            'character varying(10)')
        self.assertEqual(common.quote_type('int4[]'), 'int4[]')
        self.assertEqual(
            common.quote_type(('zoo', 'Kind')), 'zoo."Kind"')


class TestDBOps(unittest.TestCase):

    def test_dbops_foreign_key_01(self):
        fkey = dbops.ForeignKey(
            ('public', 'cat'), 'cat:animal_fk', ('cat_id',),
            ref_table_name=('public', 'animal'),
            ref_columns=('id',),
            on_update=s_enum.ReferentialAction.Cascade,
            on_delete=s_enum.ReferentialAction.Cascade,
            deferrable=True,
            deferred=True,
        )
        self.assertEqual(
            fkey.constraint_code(None),
            'FOREIGN KEY (cat_id) REFERENCES public.animal (id) '
            'ON UPDATE CASCADE ON DELETE CASCADE '
            'DEFERRABLE INITIALLY DEFERRED')
        self.assertEqual(fkey.constraint_name(), '"cat:animal_fk"')

    def test_dbops_foreign_key_02(self):
        fkey = dbops.ForeignKey(
            ('public', 'owner'), 'owner_fk', ('pet',),
            ref_table_name=('public', 'animal'),
            ref_columns=('id',),
        )
        self.assertEqual(
            fkey.constraint_code(None),
            'FOREIGN KEY (pet) REFERENCES public.animal (id) '
            'ON UPDATE NO ACTION ON DELETE NO ACTION')

    def test_dbops_foreign_key_03(self):
        with self.assertRaisesRegex(ValueError, 'same arity'):
            dbops.ForeignKey(
                ('public', 'cat'), 'fk', ('a', 'b'),
                ref_table_name=('public', 'animal'),
                ref_columns=('id',),
            )

        with self.assertRaisesRegex(ValueError, 'only deferrable'):
            dbops.ForeignKey(
                ('public', 'cat'), 'fk', ('a',),
                ref_table_name=('public', 'animal'),
                ref_columns=('id',),
                deferred=True,
            )

    def test_dbops_alter_table_01(self):
        fkey = dbops.ForeignKey(
            ('public', 'cat'), 'fk', ('id',),
            ref_table_name=('public', 'animal'),
            ref_columns=('id',),
        )
        alter = dbops.AlterTable(('public', 'cat'))
        alter.add_operation(dbops.AlterTableAddConstraint(fkey))

        sql = _render(alter)
        self.assertTrue(sql.startswith('DO LANGUAGE plpgsql $__$\n'))
        self.assertTrue(sql.endswith('\n$__$;'))
        self.assertIn(
            'ALTER TABLE public.cat ADD CONSTRAINT fk FOREIGN KEY (id) '
            'REFERENCES public.animal (id)',
            sql)

    def test_dbops_trigger_01(self):
        trigger = dbops.Trigger(
            'animal:cat/u',
            table_name=('public', 'cat'),
            events=(s_enum.TriggerEvent.Update,),
            timing=s_enum.TriggerTiming.After,
            procedure=('variants', 'propagate'),
            procedure_args=('{"a":1}',),
            update_columns=('cat_id',),
        )
        code = dbops.CreateTrigger(trigger).code()
        self.assertIn(
            'CREATE TRIGGER "animal:cat/u" AFTER UPDATE OF cat_id', code)
        self.assertIn('ON public.cat', code)
        self.assertIn('FOR EACH ROW', code)
        self.assertIn(
            'EXECUTE PROCEDURE variants.propagate(\'{"a":1}\')', code)

    def test_dbops_trigger_02(self):
        with self.assertRaisesRegex(ValueError, 'only be given for UPDATE'):
            dbops.Trigger(
                't',
                table_name=('public', 'cat'),
                events=(s_enum.TriggerEvent.Insert,),
                procedure=('variants', 'propagate'),
                update_columns=('id',),
            )

    def test_dbops_trigger_03(self):
        trigger = dbops.Trigger(
            't',
            table_name=('public', 'cat'),
            events=(s_enum.TriggerEvent.Insert,),
            timing=s_enum.TriggerTiming.Before,
            procedure=('variants', 'propagate'),
            metadata={'description': "cat's hook"},
        )
        sql = _render(dbops.CreateTrigger(trigger, conditional=True))
        self.assertIn('IF (NOT EXISTS (', sql)
        self.assertIn("AND tg.tgname = 't'", sql)
        self.assertIn(
            "COMMENT ON TRIGGER t ON public.cat IS 'cat''s hook'", sql)

    def test_dbops_schema_01(self):
        self.assertEqual(
            dbops.CreateSchema('variants', conditional=True).code(),
            'CREATE SCHEMA IF NOT EXISTS variants')
        self.assertEqual(
            dbops.CreateSchema('variants').code(),
            'CREATE SCHEMA variants')

    def test_dbops_insert_from_select_01(self):
        cmd = dbops.InsertFromSelect(
            ('public', 'animal'), ('zoo', 'id'),
            source_name=('public', 'cat'),
            source_columns=('cat_zoo', 'cat_id'),
        )
        self.assertEqual(
            cmd.code(),
            'INSERT INTO public.animal (zoo, id)\n'
            'SELECT cat_zoo, cat_id FROM public.cat')

        with self.assertRaisesRegex(ValueError, 'same length'):
            dbops.InsertFromSelect(
                ('public', 'animal'), ('id',),
                source_name=('public', 'cat'),
                source_columns=('a', 'b'),
            )


class TestDeltas(unittest.TestCase):

    def test_deltas_install_constraint_01(self):
        sql = _render(deltas.InstallConstraint(_binding()))

        backfill = sql.index(
            'INSERT INTO public.animal (id)\n'
            'SELECT cat_id FROM public.cat')
        fkey = sql.index(
            'ALTER TABLE public.cat ADD CONSTRAINT "cat:animal_fk" '
            'FOREIGN KEY (cat_id) REFERENCES public.animal (id) '
            'ON UPDATE CASCADE ON DELETE CASCADE '
            'DEFERRABLE INITIALLY DEFERRED')
        self.assertLess(backfill, fkey)

    def test_deltas_synthesize_hooks_01(self):
        binding = _binding()
        hooks = deltas.SynthesizeHooks(binding)
        triggers = [cmd.trigger for cmd in hooks]

        self.assertEqual(
            [t.name for t in triggers],
            ['animal:cat/i', 'animal:cat/u', 'animal:cat/d'])
        self.assertEqual(
            [t.timing for t in triggers],
            [s_enum.TriggerTiming.Before,
             s_enum.TriggerTiming.After,
             s_enum.TriggerTiming.After])
        self.assertEqual(triggers[0].update_columns, ())
        self.assertEqual(triggers[1].update_columns, ('cat_id',))

        for t in triggers:
            self.assertEqual(t.procedure, ('variants', 'propagate'))
            self.assertEqual(
                json.loads(t.procedure_args[0]),
                binding.mapping.to_dict())

    def test_deltas_synthesize_hooks_02(self):
        hooks = deltas.SynthesizeHooks(_binding(), function_schema='zoo')
        sql = _render(hooks)
        self.assertEqual(sql.count('CREATE TRIGGER'), 3)
        self.assertEqual(sql.count('EXECUTE PROCEDURE zoo.propagate('), 3)
        self.assertIn(
            "COMMENT ON TRIGGER \"animal:cat/i\" ON public.cat IS "
            "'Propagates inserts on public.cat into public.animal'",
            sql)

    def test_metaschema_bootstrap_01(self):
        sql = _render(metaschema.get_bootstrap_commands())
        self.assertIn('CREATE SCHEMA IF NOT EXISTS variants', sql)
        self.assertIn(
            'CREATE OR REPLACE FUNCTION variants.propagate()', sql)
        self.assertIn('RETURNS trigger', sql)
        self.assertIn('LANGUAGE plpgsql VOLATILE', sql)
        self.assertLess(
            sql.index('CREATE SCHEMA'), sql.index('CREATE OR REPLACE'))

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


import pgvariants
from pgvariants import errors
from pgvariants import memory
from pgvariants import registry as b_registry
from pgvariants import testbase as tb
from pgvariants.common import enum as s_enum
from pgvariants.memory import engine
from pgvariants.schema import bindings as s_bindings


class BindingTestCase(tb.MemoryTestCase):

    def setUp(self):
        super().setUp()
        self.create_table('animal', [('id', 'integer')], ['id'])
        self.create_table(
            'cat', [('id', 'integer'), ('lives', 'integer')], ['id'])
        self.create_table(
            'walrus', [('walrus_id', 'int4'), ('tusks', 'integer')],
            ['walrus_id'])


class TestBind(BindingTestCase):

    async def test_binding_install_01(self):
        binding = await self.registry.bind('animal', 'cat')

        self.assertEqual(binding.union, ('public', 'animal'))
        self.assertEqual(binding.variant, ('public', 'cat'))
        self.assertEqual(binding.mapping.pairs, (('id', 'id'),))

        fkey = self.db.get_foreign_key('cat', 'cat:animal_fk')
        self.assertEqual(fkey.ref_table, ('public', 'animal'))
        self.assertEqual(fkey.on_update, s_enum.ReferentialAction.Cascade)
        self.assertEqual(fkey.on_delete, s_enum.ReferentialAction.Cascade)
        self.assertTrue(fkey.deferrable)
        self.assertTrue(fkey.deferred)

        triggers = {t.name: t for t in self.db.iter_triggers()}
        self.assertEqual(
            set(triggers), {'animal:cat/i', 'animal:cat/u', 'animal:cat/d'})
        self.assertEqual(triggers['animal:cat/i'].timing,
                         s_enum.TriggerTiming.Before)
        self.assertEqual(triggers['animal:cat/u'].update_columns, ('id',))
        self.assertEqual(triggers['animal:cat/d'].args,
                         (binding.mapping.to_json(),))

    async def test_binding_install_02(self):
        await self.registry.bind('animal', 'cat')
        await self.registry.bind('animal', 'walrus')

        walrus = self.registry.get_binding('walrus')
        self.assertEqual(walrus.mapping.pairs, (('id', 'walrus_id'),))
        self.assertEqual(
            {b.variant for b in self.registry.bindings_of('animal')},
            {('public', 'cat'), ('public', 'walrus')})
        self.assertEqual(len(self.registry.bindings()), 2)

    async def test_binding_install_03(self):
        self.db.insert('cat', {'id': 1, 'lives': 9})
        self.db.insert('cat', {'id': 2, 'lives': 7})

        await self.registry.bind('animal', 'cat')

        self.assertEqual(self.db.keys('animal'), {(1,), (2,)})
        await self.registry.validate(self.registry.get_binding('cat'))


class TestBindErrors(BindingTestCase):

    async def assert_not_bound(self, variant):
        self.assertEqual(list(self.db.iter_triggers()), [])
        self.assertEqual(
            await self.backend.get_bindings(variant=('public', variant)),
            [])
        self.assertIsNone(self.registry.get_binding(variant))

    async def test_binding_errors_01(self):
        self.create_table(
            'pair', [('a', 'integer'), ('b', 'integer')], ['a', 'b'])

        with self.assertRaisesRegex(errors.IncompatibilityError,
                                    'arity differs'):
            await self.registry.bind('animal', 'pair')

        await self.assert_not_bound('pair')
        self.assertIsNone(self.db.get_foreign_key('pair', 'pair:animal_fk'))

    async def test_binding_errors_02(self):
        self.create_table('plant', [('name', 'text')], ['name'])

        with self.assertRaisesRegex(errors.IncompatibilityError,
                                    'has type text, expected integer'):
            await self.registry.bind('animal', 'plant')

        await self.assert_not_bound('plant')

    async def test_binding_errors_03(self):
        with self.assertRaisesRegex(errors.MetadataError,
                                    'relation public.dog does not exist'):
            await self.registry.bind('animal', 'dog')

        self.create_table('log', [('line', 'text')], [])
        with self.assertRaisesRegex(errors.MetadataError,
                                    'has no primary key'):
            await self.registry.bind('animal', 'log')

        with self.assertRaisesRegex(errors.IncompatibilityError,
                                    'to itself'):
            await self.registry.bind('animal', 'animal')

    async def test_binding_errors_04(self):
        await self.registry.bind('animal', 'cat')

        with self.assertRaisesRegex(
                errors.NamingConflict, 'already bound',
                hint='bindings cannot be altered or re-registered'):
            await self.registry.bind('animal', 'cat')

        self.create_table('creature', [('id', 'integer')], ['id'])
        with self.assertRaisesRegex(errors.NamingConflict,
                                    'public.cat is already bound to '
                                    'public.animal'):
            await self.registry.bind('creature', 'cat')

        self.assertEqual(len(list(self.db.iter_triggers())), 3)

    async def test_binding_errors_05(self):
        def noop(db, td):
            pass

        self.db.create_trigger(engine.Trigger(
            name='animal:cat/d',
            table=('public', 'cat'),
            events=frozenset({s_enum.TriggerEvent.Delete}),
            timing=s_enum.TriggerTiming.After,
            procedure=noop,
        ))

        with self.assertRaisesRegex(errors.NamingConflict,
                                    "trigger 'animal:cat/d' already exists"):
            await self.registry.bind('animal', 'cat')

        self.assertIsNone(self.db.get_foreign_key('cat', 'cat:animal_fk'))
        self.assertEqual(self.db.rows('animal'), [])

    async def test_binding_errors_06(self):
        self.db.insert('animal', {'id': 1})
        self.db.insert('cat', {'id': 1, 'lives': 9})
        self.db.insert('cat', {'id': 2, 'lives': 9})

        # The backfill is not idempotent.
        with self.assertRaises(errors.UniqueViolation):
            await self.registry.bind('animal', 'cat')

        await self.assert_not_bound('cat')
        self.assertIsNone(self.db.get_foreign_key('cat', 'cat:animal_fk'))
        self.assertEqual(self.db.keys('animal'), {(1,)})


class TestPropagation(BindingTestCase):

    async def setup_bindings(self):
        await self.registry.bind('animal', 'cat')
        await self.registry.bind('animal', 'walrus')

    async def test_binding_propagation_01(self):
        await self.setup_bindings()

        self.db.insert('cat', {'id': 1, 'lives': 9})
        self.db.insert('walrus', {'walrus_id': 2, 'tusks': 2})

        self.assertEqual(self.db.keys('animal'), {(1,), (2,)})

    async def test_binding_propagation_02(self):
        await self.setup_bindings()
        self.db.insert('cat', {'id': 1, 'lives': 9})

        # Variants are disjoint.
        with self.assertRaises(errors.UniqueViolation):
            self.db.insert('walrus', {'walrus_id': 1, 'tusks': 2})

        self.assertEqual(self.db.rows('walrus'), [])
        self.assertEqual(self.db.keys('animal'), {(1,)})

    async def test_binding_propagation_03(self):
        await self.setup_bindings()
        self.db.insert('cat', {'id': 1, 'lives': 9})
        self.db.insert('walrus', {'walrus_id': 2, 'tusks': 2})

        self.db.update('animal', 1, {'id': 5})
        self.assertEqual(self.db.rows('cat'), [{'id': 5, 'lives': 9}])

        self.db.delete('animal', 2)
        self.assertEqual(self.db.rows('walrus'), [])
        self.assertEqual(self.db.keys('animal'), {(5,)})

    async def test_binding_propagation_04(self):
        await self.setup_bindings()
        self.create_table(
            'keeper', [('id', 'integer'), ('pet', 'integer')], ['id'])
        self.db.add_foreign_key(engine.ForeignKey(
            name='keeper_pet_fk',
            table=('public', 'keeper'),
            columns=('pet',),
            ref_table=('public', 'animal'),
            ref_columns=('id',),
            on_update=s_enum.ReferentialAction.Cascade,
        ))

        self.db.insert('cat', {'id': 1, 'lives': 9})
        self.db.insert('keeper', {'id': 100, 'pet': 1})

        self.db.update('cat', 1, {'id': 2})

        self.assertEqual(self.db.keys('animal'), {(2,)})
        self.assertEqual(self.db.get('keeper', 100), {'id': 100, 'pet': 2})

    async def test_binding_propagation_05(self):
        await self.setup_bindings()
        self.db.insert('cat', {'id': 1, 'lives': 9})
        self.db.insert('walrus', {'walrus_id': 2, 'tusks': 2})

        self.db.update('cat', 1, {'lives': 8})
        self.assertEqual(self.db.keys('animal'), {(1,), (2,)})

        self.db.delete('walrus', 2)
        self.assertEqual(self.db.keys('animal'), {(1,)})

        with self.assertRaises(errors.UniqueViolation):
            self.db.insert('walrus', {'walrus_id': 1, 'tusks': 1})

    async def test_binding_propagation_06(self):
        await self.setup_bindings()
        self.db.insert('cat', {'id': 1, 'lives': 9})
        self.db.insert('walrus', {'walrus_id': 2, 'tusks': 2})

        # A key update that collides with another variant's key is
        # rejected by the union and leaves both variants unchanged.
        with self.assertRaises(errors.UniqueViolation):
            self.db.update('cat', 1, {'id': 2})

        self.assertEqual(self.db.rows('cat'), [{'id': 1, 'lives': 9}])
        self.assertEqual(self.db.keys('animal'), {(1,), (2,)})

    async def test_binding_propagation_07(self):
        await self.setup_bindings()

        with self.assertRaisesRegex(RuntimeError, 'abort'):
            with self.db.transaction():
                self.db.insert('cat', {'id': 1, 'lives': 9})
                self.assertEqual(self.db.keys('animal'), {(1,)})
                raise RuntimeError('abort')

        self.assertEqual(self.db.rows('cat'), [])
        self.assertEqual(self.db.rows('animal'), [])

    async def test_binding_propagation_08(self):
        self.create_table(
            'zoo.animal', [('zoo', 'text'), ('id', 'integer')],
            ['zoo', 'id'])
        self.create_table(
            'zoo.cat',
            [('z', 'character varying'), ('n', 'int4'), ('name', 'text')],
            ['z', 'n'])
        with self.assertRaises(errors.IncompatibilityError):
            # text and character varying are distinct types.
            await self.registry.bind('zoo.animal', 'zoo.cat')

        self.create_table(
            'zoo.fish', [('f_zoo', 'text'), ('f_id', 'integer')],
            ['f_zoo', 'f_id'])
        binding = await self.registry.bind('zoo.animal', 'zoo.fish')
        self.assertEqual(
            binding.mapping.pairs, (('zoo', 'f_zoo'), ('id', 'f_id')))

        self.db.insert('zoo.fish', {'f_zoo': 'berlin', 'f_id': 1})
        self.db.update('zoo.fish', ('berlin', 1), {'f_zoo': 'paris'})
        self.assertEqual(
            self.db.rows('zoo.animal'), [{'zoo': 'paris', 'id': 1}])

        self.db.update('zoo.animal', ('paris', 1), {'id': 2})
        self.assertEqual(
            self.db.rows('zoo.fish'), [{'f_zoo': 'paris', 'f_id': 2}])


class TestRegistry(BindingTestCase):

    async def test_binding_registry_01(self):
        binding = await self.registry.bind('animal', 'cat')
        await self.registry.bind('animal', 'walrus')

        other = b_registry.Registry(self.backend)
        self.assertEqual(other.bindings(), ())

        loaded = await other.load()
        self.assertEqual(len(loaded), 2)
        self.assertEqual(other.get_binding('cat'), binding)
        self.assertEqual(
            {b.variant for b in other.bindings_of('public.animal')},
            {('public', 'cat'), ('public', 'walrus')})
        self.assertEqual(other.bindings_of('cat'), ())

    async def test_binding_validate_01(self):
        cat = await self.registry.bind('animal', 'cat')
        walrus = await self.registry.bind('animal', 'walrus')
        self.db.insert('cat', {'id': 1, 'lives': 9})
        self.db.insert('walrus', {'walrus_id': 2, 'tusks': 2})

        await self.registry.validate(cat)
        await self.registry.validate(walrus)

        # Rows written to the union directly have no variant.
        self.db.insert('animal', {'id': 3})
        with self.assertRaisesRegex(
                errors.ConstraintViolation, 'out of sync',
                details='keys without a variant: [(3,)]'):
            await self.registry.validate(cat)

    async def test_binding_validate_02(self):
        binding = s_bindings.Binding.create(s_bindings.ColumnMapping(
            union=('public', 'animal'),
            variant=('public', 'cat'),
            pairs=(('id', 'id'),),
        ))

        with self.assertRaisesRegex(errors.MetadataError,
                                    "constraint 'cat:animal_fk' is missing"):
            await self.registry.validate(binding)

    async def test_binding_module_bind_01(self):
        result = await pgvariants.bind(self.backend, 'animal', 'cat')
        self.assertIsNone(result)

        found = await self.backend.get_bindings(union=('public', 'animal'))
        self.assertEqual([b.variant for b in found], [('public', 'cat')])

        self.db.insert('cat', {'id': 1, 'lives': 9})
        self.assertEqual(self.db.keys('animal'), {(1,)})

    async def test_binding_registry_02(self):
        db = engine.Database(default_schema='zoo')
        db.create_table('animal', [('id', 'integer')], ['id'])
        db.create_table('cat', [('id', 'integer')], ['id'])
        registry = b_registry.Registry(memory.MemoryBackend(db))

        binding = await registry.bind('animal', 'cat')
        self.assertEqual(binding.union, ('zoo', 'animal'))
        self.assertEqual(binding.variant, ('zoo', 'cat'))
        self.assertIs(registry.get_binding('cat'), binding)
        self.assertIsNone(registry.get_binding(('public', 'cat')))

        db.insert('cat', {'id': 1})
        self.assertEqual(db.keys('animal'), {(1,)})

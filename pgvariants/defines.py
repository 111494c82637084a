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

from .common import enum as s_enum


# Schema that holds the shared propagation function.
VARIANTS_FUNCTION_SCHEMA = 'variants'
VARIANTS_PROPAGATE_FUNCTION = 'propagate'

# Schema used to resolve relation names given without one.
DEFAULT_SCHEMA = 'public'

# This is a postgres limitation.
# https://www.postgresql.org/docs/current/sql-syntax-lexical.html
MAX_IDENTIFIER_LENGTH = 63

TRIGGER_NAME_SEPARATOR = ':'
TRIGGER_SUFFIXES = {
    event: '/' + event.suffix for event in s_enum.TriggerEvent
}

FOREIGN_KEY_SUFFIX = '_fk'

# Name of the environment variable holding the DSN of the
# PostgreSQL server used by the live test-suite.
TEST_DSN_ENV_VAR = 'PGVARIANTS_TEST_DSN'

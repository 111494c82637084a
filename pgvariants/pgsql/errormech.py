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
from typing import Optional, Type, Dict

import asyncpg

from pgvariants import errors


ERROR_INTEGRITY_CONSTRAINT_VIOLATION = '23000'
ERROR_RESTRICT_VIOLATION = '23001'
ERROR_NOT_NULL_VIOLATION = '23502'
ERROR_FOREIGN_KEY_VIOLATION = '23503'
ERROR_UNIQUE_VIOLATION = '23505'
ERROR_CHECK_VIOLATION = '23514'
ERROR_DATATYPE_MISMATCH = '42804'
ERROR_INVALID_FOREIGN_KEY = '42830'
ERROR_UNDEFINED_TABLE = '42P01'
ERROR_UNDEFINED_COLUMN = '42703'
ERROR_INVALID_SCHEMA_NAME = '3F000'
ERROR_DUPLICATE_OBJECT = '42710'


directly_mappable: Dict[str, Type[errors.VariantsError]] = {
    ERROR_UNIQUE_VIOLATION: errors.UniqueViolation,
    ERROR_FOREIGN_KEY_VIOLATION: errors.ForeignKeyViolation,
    ERROR_INTEGRITY_CONSTRAINT_VIOLATION: errors.ConstraintViolation,
    ERROR_RESTRICT_VIOLATION: errors.ConstraintViolation,
    ERROR_NOT_NULL_VIOLATION: errors.ConstraintViolation,
    ERROR_CHECK_VIOLATION: errors.ConstraintViolation,
    # Raised when the reference is added between keys of different
    # types or when the referenced columns are not a key.
    ERROR_DATATYPE_MISMATCH: errors.ConstraintViolation,
    ERROR_INVALID_FOREIGN_KEY: errors.ConstraintViolation,
    ERROR_UNDEFINED_TABLE: errors.MetadataError,
    ERROR_UNDEFINED_COLUMN: errors.MetadataError,
    ERROR_INVALID_SCHEMA_NAME: errors.MetadataError,
    ERROR_DUPLICATE_OBJECT: errors.NamingConflict,
}


def translate_pg_error(
    err: asyncpg.PostgresError,
) -> Optional[errors.VariantsError]:
    """Return the error to raise in place of *err*, if there is one."""
    code = getattr(err, 'sqlstate', None)
    if code is None:
        return None

    errcls = directly_mappable.get(code)
    if errcls is None:
        return None

    details = []
    detail = getattr(err, 'detail', None)
    if detail:
        details.append(detail)
    constraint_name = getattr(err, 'constraint_name', None)
    if constraint_name:
        details.append(f'constraint: {constraint_name}')

    return errcls(
        err.args[0] if err.args else str(err),
        details='; '.join(details) or None,
        hint=getattr(err, 'hint', None),
        pgcode=code,
    )

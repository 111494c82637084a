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

from .base import *  # NOQA


__all__ = base.__all__ + (  # type: ignore
    'InternalError',
    'MetadataError',
    'IncompatibilityError',
    'ConstraintViolation',
    'UniqueViolation',
    'ForeignKeyViolation',
    'NamingConflict',
)


class InternalError(VariantsError):
    _code = 0x_01_00_00_00


class MetadataError(VariantsError):
    _code = 0x_02_00_00_00


class IncompatibilityError(VariantsError):
    _code = 0x_03_00_00_00


class ConstraintViolation(VariantsError):
    _code = 0x_04_00_00_00


class UniqueViolation(ConstraintViolation):
    _code = 0x_04_01_00_00


class ForeignKeyViolation(ConstraintViolation):
    _code = 0x_04_02_00_00


class NamingConflict(VariantsError):
    _code = 0x_05_00_00_00

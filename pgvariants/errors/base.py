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


__all__ = (
    'VariantsError',
)


class VariantsErrorMeta(type):
    _error_map: Dict[int, Type[VariantsError]] = {}
    _name_map: Dict[str, Type[VariantsError]] = {}

    def __new__(mcls, name, bases, dct):
        cls = super().__new__(mcls, name, bases, dct)

        assert name not in mcls._name_map
        mcls._name_map[name] = cls

        code = dct.get('_code')
        if code is not None:
            mcls._error_map[code] = cls

        return cls

    def __init__(cls, name, bases, dct):
        if cls._code is None and cls.__module__ != __name__:
            # We don't want any VariantsError subclasses to not
            # have a code.
            raise RuntimeError(
                'direct subclassing of VariantsError is prohibited; '
                'subclass one of its subclasses in pgvariants.errors')

    @classmethod
    def get_error_class_from_code(mcls, code: int) -> Type[VariantsError]:
        return mcls._error_map[code]

    @classmethod
    def get_error_class_from_name(mcls, name: str) -> Type[VariantsError]:
        return mcls._name_map[name]


class VariantsError(Exception, metaclass=VariantsErrorMeta):

    _code: Optional[int] = None
    _attrs: Dict[int, str]

    def __init__(
        self,
        msg: Optional[str] = None,
        *,
        hint: Optional[str] = None,
        details: Optional[str] = None,
        pgcode: Optional[str] = None,
    ):
        if type(self) is VariantsError:
            raise RuntimeError(
                'VariantsError is not supposed to be instantiated directly')

        self._attrs = {}
        self._pgcode = pgcode
        self.set_hint_and_details(hint, details)

        super().__init__(msg)

    @classmethod
    def get_code(cls):
        if cls._code is None:
            raise RuntimeError(
                f'error code is not set (type: {cls.__name__})')
        return cls._code

    def to_json(self):
        err_dct = {
            'message': str(self),
            'type': str(type(self).__name__),
            'code': self.get_code(),
        }
        for name, field in _JSON_FIELDS.items():
            if field in self._attrs:
                err_dct[name] = self._attrs[field]

        return err_dct

    def set_hint_and_details(self, hint, details=None):
        if hint is not None:
            self._attrs[FIELD_HINT] = hint
        if details is not None:
            self._attrs[FIELD_DETAILS] = details

    @property
    def hint(self):
        return self._attrs.get(FIELD_HINT)

    @property
    def details(self):
        return self._attrs.get(FIELD_DETAILS)

    @property
    def pgcode(self):
        return self._pgcode


FIELD_HINT = 0x_00_01
FIELD_DETAILS = 0x_00_02

# Fields to include in the json dump of the error
_JSON_FIELDS = {
    'hint': FIELD_HINT,
    'details': FIELD_DETAILS,
}

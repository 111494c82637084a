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


import setuptools


RUNTIME_DEPS = [
    'asyncpg>=0.29.0',
    'immutables>=0.18',
]

TEST_DEPS = [
    'pytest>=7.0',
]

EXTRA_DEPS = {
    'test': TEST_DEPS,
}


setuptools.setup(
    name='pgvariants',
    version='0.1.0',
    description='Tagged unions over PostgreSQL relations',
    license='Apache-2.0',
    python_requires='>=3.10',
    packages=setuptools.find_packages(include=['pgvariants', 'pgvariants.*']),
    install_requires=RUNTIME_DEPS,
    extras_require=EXTRA_DEPS,
)

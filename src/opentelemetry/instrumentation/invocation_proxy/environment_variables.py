# Copyright The OpenTelemetry Authors
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

OTEL_PYTHON_INVOCATION_PROXY_INSTRUMENT = (
    "OTEL_PYTHON_INVOCATION_PROXY_INSTRUMENT"
)
"""
.. envvar:: OTEL_PYTHON_INVOCATION_PROXY_INSTRUMENT

Default value of the ``instrument`` argument of
:func:`opentelemetry.instrumentation.invocation_proxy.wrap` when it is not
given explicitly. Set it to ``true`` to record invocation metrics for every
wrapped object. Default is ``false``.
"""

OTEL_PYTHON_INVOCATION_PROXY_SYSTEM_NAME = (
    "OTEL_PYTHON_INVOCATION_PROXY_SYSTEM_NAME"
)
"""
.. envvar:: OTEL_PYTHON_INVOCATION_PROXY_SYSTEM_NAME

Name of the database system printed in the banner of every trace log record,
for example ``ClickHouse JDBC`` or ``postgresql``. Default is ``DB-API``.
"""

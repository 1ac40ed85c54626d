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

"""
Named invocation metric series backed by an OpenTelemetry
:class:`~opentelemetry.metrics.Meter`.

Every proxied method owns two series, named after the runtime class of the
wrapped object and the method:

* ``<class>.<method>.invocation.exceptions``, a counter of raised exceptions
* ``<class>.<method>.invocation.duration``, a histogram of call durations in
  milliseconds

A registry holds at most one instrument per name. Names are compared
case-insensitively, like instrument identity in the SDK, which also exports
them lowercased. Lookups take no lock once an instrument exists; creation
is serialized so that threads racing on the first call of a method end up
sharing the same instrument.

The process-wide registry returned by :func:`get_default_registry` is
created on first use against the global meter provider and lives for the
rest of the process. :func:`set_default_registry` replaces it, which is
meant for start-up configuration and tests.
"""

from __future__ import annotations

import re
import threading
from typing import Callable, TypeVar

from opentelemetry.instrumentation.invocation_proxy.utils import (
    qualified_class_name,
)
from opentelemetry.instrumentation.invocation_proxy.version import (
    __version__,
)
from opentelemetry.metrics import Counter, Histogram, MeterProvider, get_meter

_INVOCATION = "invocation"
EXCEPTIONS_SUFFIX = "exceptions"
DURATION_SUFFIX = "duration"

# Instrument names are limited to this alphabet and length by the API and
# must start with a letter
_INVALID_NAME_CHARACTERS = re.compile(r"[^-_./a-zA-Z0-9]")
_LEADING_NON_LETTERS = re.compile(r"^[^a-zA-Z]+")
_MAX_NAME_LENGTH = 255

InstrumentT = TypeVar("InstrumentT")


def get_metric_name(target_type: type, method_name: str, suffix: str) -> str:
    """Returns the name of an invocation series of ``method_name``.

    Characters the API rejects become ``_``, leading non-letters (as in
    ``__main__``) are dropped and an overlong class and method prefix is
    shortened so that ``.invocation.<suffix>`` is always kept.
    """
    prefix = _INVALID_NAME_CHARACTERS.sub(
        "_", f"{qualified_class_name(target_type)}.{method_name}"
    )
    prefix = _LEADING_NON_LETTERS.sub("", prefix) or "object"
    tail = f".{_INVOCATION}.{suffix}"
    return prefix[: _MAX_NAME_LENGTH - len(tail)] + tail


class InvocationMetricRegistry:
    def __init__(self, meter_provider: MeterProvider | None = None):
        self._meter = get_meter(
            __name__,
            __version__,
            meter_provider,
            schema_url="https://opentelemetry.io/schemas/1.11.0",
        )
        self._lock = threading.Lock()
        self._counters: dict[str, Counter] = {}
        self._histograms: dict[str, Histogram] = {}

    def _get_or_create(
        self,
        instruments: dict[str, InstrumentT],
        name: str,
        factory: Callable[[str], InstrumentT],
    ) -> InstrumentT:
        # instrument identity is case-insensitive in the SDK
        key = name.lower()
        instrument = instruments.get(key)
        if instrument is not None:
            return instrument
        with self._lock:
            instrument = instruments.get(key)
            if instrument is None:
                instrument = factory(name)
                instruments[key] = instrument
        return instrument

    def get_or_create_counter(self, name: str) -> Counter:
        return self._get_or_create(
            self._counters,
            name,
            lambda name: self._meter.create_counter(
                name=name,
                unit="{exception}",
                description="Exceptions raised by proxied invocations",
            ),
        )

    def get_or_create_histogram(self, name: str) -> Histogram:
        return self._get_or_create(
            self._histograms,
            name,
            lambda name: self._meter.create_histogram(
                name=name,
                unit="ms",
                description="Duration of proxied invocations",
            ),
        )

    def invocation_exceptions(
        self, target_type: type, method_name: str
    ) -> Counter:
        return self.get_or_create_counter(
            get_metric_name(target_type, method_name, EXCEPTIONS_SUFFIX)
        )

    def invocation_duration(
        self, target_type: type, method_name: str
    ) -> Histogram:
        return self.get_or_create_histogram(
            get_metric_name(target_type, method_name, DURATION_SUFFIX)
        )


_DEFAULT_REGISTRY: InvocationMetricRegistry | None = None
_DEFAULT_REGISTRY_LOCK = threading.Lock()


def get_default_registry() -> InvocationMetricRegistry:
    global _DEFAULT_REGISTRY  # pylint: disable=global-statement
    with _DEFAULT_REGISTRY_LOCK:
        if _DEFAULT_REGISTRY is None:
            _DEFAULT_REGISTRY = InvocationMetricRegistry()
        return _DEFAULT_REGISTRY


def set_default_registry(registry: InvocationMetricRegistry | None) -> None:
    """Replaces the process-wide registry, ``None`` recreates it lazily"""
    global _DEFAULT_REGISTRY  # pylint: disable=global-statement
    with _DEFAULT_REGISTRY_LOCK:
        _DEFAULT_REGISTRY = registry

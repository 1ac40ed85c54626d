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
The invocation proxy wraps any object implementing a known interface, such as
a database driver connection or statement, in a transparent stand-in. Every
call to a method of the interface is forwarded to the original object while
the proxy optionally writes a trace log record and records per-method
metrics: call duration and exception count.

Wrapping is conditional. When neither TRACE logging is enabled for this
package's logger nor instrumentation is requested, ``wrap`` returns the
original object and adds no overhead at all.

Usage
-----

.. code-block:: python

    import abc

    from opentelemetry.instrumentation.invocation_proxy import wrap


    class Statement(abc.ABC):
        @abc.abstractmethod
        def execute_query(self, sql): ...


    statement = wrap(Statement, driver_statement, instrument=True)
    statement.execute_query("SELECT 1")

The returned object behaves like ``driver_statement`` everywhere a
``Statement`` is expected. Interfaces can be abstract classes or
:class:`typing.Protocol` classes; passing a concrete class raises
:class:`NotAnInterfaceError`.

Trace logging
*************
Records are written at the ``TRACE`` level (5) to the
``opentelemetry.instrumentation.invocation_proxy`` logger:

.. code-block:: python

    import logging

    from opentelemetry.instrumentation.invocation_proxy import TRACE

    logger = logging.getLogger("opentelemetry.instrumentation.invocation_proxy")
    logger.setLevel(TRACE)

::

    ==== DB-API trace begin ====
    Call class: driver.Statement
    Method: execute_query
    Object: <driver.Statement object at 0x7f...>
    Args: ('SELECT 1')
    Duration: 3ms
    Invoke result: <driver.ResultSet object at 0x7f...>
    ==== DB-API trace end ====

Metrics
*******
With ``instrument=True`` each method of the interface gets a
``<class>.<method>.invocation.duration`` histogram and, once it has raised,
a ``<class>.<method>.invocation.exceptions`` counter, where ``<class>`` is
the fully qualified runtime class of the wrapped object. Instruments live in
an :class:`InvocationMetricRegistry`; the process-wide one is used unless a
registry is passed explicitly.

Configuration
-------------

* ``OTEL_PYTHON_INVOCATION_PROXY_INSTRUMENT``: default for ``instrument``
* ``OTEL_PYTHON_INVOCATION_PROXY_SYSTEM_NAME``: name printed in trace
  banners, ``DB-API`` by default

API
---
"""

from __future__ import annotations

import functools
import inspect
import logging
import threading
import weakref
from timeit import default_timer
from typing import Any, Callable, TypeVar

import wrapt

from opentelemetry.instrumentation.invocation_proxy.interfaces import (
    NotAnInterfaceError,
    check_interface,
    interface_methods,
    is_interface,
)
from opentelemetry.instrumentation.invocation_proxy.metrics import (
    InvocationMetricRegistry,
    get_default_registry,
    get_metric_name,
    set_default_registry,
)
from opentelemetry.instrumentation.invocation_proxy.utils import (
    TRACE,
    describe_exception,
    format_arguments,
    get_instrument_enabled,
    get_system_name,
    qualified_class_name,
    safe_str,
)
from opentelemetry.instrumentation.invocation_proxy.version import (
    __version__,
)
from opentelemetry.instrumentation.utils import is_instrumentation_enabled

_logger = logging.getLogger(__name__)

T = TypeVar("T")

_TRACE_TEMPLATE = (
    "==== %s trace begin ====\n"
    "Call class: %s\n"
    "Method: %s\n"
    "Object: %s\n"
    "Args: %s\n"
    "Duration: %sms\n"
    "Invoke result: %s\n"
    "==== %s trace end ===="
)


def wrap(
    interface: type[T],
    target: T,
    instrument: bool | None = None,
    *,
    system_name: str | None = None,
    registry: InvocationMetricRegistry | None = None,
) -> T:
    """Wraps ``target`` in a logging and instrumentation proxy.

    Args:
        interface: The interface implemented by ``target``. Only methods
            declared by it are intercepted.
        target: The object to wrap.
        instrument: Record invocation metrics. If omitted the
            ``OTEL_PYTHON_INVOCATION_PROXY_INSTRUMENT`` environment variable
            decides.
        system_name: Name printed in trace log banners.
        registry: The :class:`InvocationMetricRegistry` receiving metrics.
            If omitted the process-wide registry is used.

    Returns:
        ``target`` itself when neither TRACE logging nor instrumentation is
        enabled, an :class:`InvocationProxy` otherwise.

    Raises:
        NotAnInterfaceError: ``interface`` is not a protocol or abstract class.
    """
    check_interface(interface)

    if isinstance(target, InvocationProxy):
        _logger.warning("Object already wrapped in an invocation proxy")
        return target

    if instrument is None:
        instrument = get_instrument_enabled()

    if not (_logger.isEnabledFor(TRACE) or instrument):
        return target

    if instrument and registry is None:
        registry = get_default_registry()

    proxy_class = get_invocation_proxy_class(interface)
    return proxy_class(
        target,
        _InvocationDispatcher(
            target,
            system_name or get_system_name(),
            registry if instrument else None,
        ),
    )


def unwrap(proxy: T | InvocationProxy) -> T:
    """Returns the object wrapped by ``proxy``.

    Args:
        proxy: A proxy returned by :func:`wrap`.
    """
    if isinstance(proxy, InvocationProxy):
        return proxy.__wrapped__

    _logger.warning("Object is not wrapped in an invocation proxy")
    return proxy


class _InvocationRecord:
    """Observations about a single call, consumed once the call is done"""

    __slots__ = (
        "_dispatcher",
        "method_name",
        "args",
        "kwargs",
        "trace_enabled",
        "outcome",
        "start",
    )

    def __init__(self, dispatcher, method_name, args, kwargs):
        self._dispatcher = dispatcher
        self.method_name = method_name
        self.args = args
        self.kwargs = kwargs
        self.trace_enabled = _logger.isEnabledFor(TRACE)
        self.outcome = ""
        self.start = default_timer()

    def succeeded(self, result: Any) -> None:
        if self.trace_enabled:
            self.outcome = safe_str(result)

    def failed(self, exc: Exception) -> None:
        if self.trace_enabled:
            self.outcome = describe_exception(exc)
        self._dispatcher.mark_exception(self.method_name)

    def finish(self) -> None:
        duration_ms = max(round((default_timer() - self.start) * 1000), 0)
        if self.trace_enabled:
            self._dispatcher.log_invocation(self, duration_ms)
        self._dispatcher.record_duration(self.method_name, duration_ms)


class _InvocationDispatcher:
    def __init__(
        self,
        target: Any,
        system_name: str,
        registry: InvocationMetricRegistry | None,
    ):
        self._target = target
        self._target_type = type(target)
        self._system_name = system_name
        self._registry = registry

    def invoke(self, method_name: str, args, kwargs):
        method = getattr(self._target, method_name)
        if not is_instrumentation_enabled():
            return method(*args, **kwargs)

        record = _InvocationRecord(self, method_name, args, kwargs)
        try:
            result = method(*args, **kwargs)
        except Exception as exc:
            record.failed(exc)
            raise
        else:
            record.succeeded(result)
            return result
        finally:
            record.finish()

    async def invoke_async(self, method_name: str, args, kwargs):
        method = getattr(self._target, method_name)
        if not is_instrumentation_enabled():
            return await method(*args, **kwargs)

        record = _InvocationRecord(self, method_name, args, kwargs)
        try:
            result = await method(*args, **kwargs)
        except Exception as exc:
            record.failed(exc)
            raise
        else:
            record.succeeded(result)
            return result
        finally:
            record.finish()

    def mark_exception(self, method_name: str) -> None:
        if self._registry is None:
            return
        try:
            self._registry.invocation_exceptions(
                self._target_type, method_name
            ).add(1)
        except Exception as exc:  # pylint: disable=broad-except
            _logger.exception(
                "Exception while recording invocation exception: %s", exc
            )

    def record_duration(self, method_name: str, duration_ms: int) -> None:
        if self._registry is None:
            return
        try:
            self._registry.invocation_duration(
                self._target_type, method_name
            ).record(duration_ms)
        except Exception as exc:  # pylint: disable=broad-except
            _logger.exception(
                "Exception while recording invocation duration: %s", exc
            )

    def log_invocation(
        self, record: _InvocationRecord, duration_ms: int
    ) -> None:
        try:
            _logger.log(
                TRACE,
                _TRACE_TEMPLATE,
                self._system_name,
                qualified_class_name(self._target_type),
                record.method_name,
                safe_str(self._target),
                format_arguments(record.args, record.kwargs),
                duration_ms,
                record.outcome,
                self._system_name,
            )
        except Exception as exc:  # pylint: disable=broad-except
            _logger.exception("Exception while logging invocation: %s", exc)


# pylint: disable=abstract-method
class InvocationProxy(wrapt.ObjectProxy):
    """Base class of the proxies generated for each interface.

    Subclasses carry one forwarding method per interface method, see
    :func:`get_invocation_proxy_class`. Everything else resolves on the
    wrapped object.
    """

    def __init__(self, wrapped: Any, dispatcher: _InvocationDispatcher):
        wrapt.ObjectProxy.__init__(self, wrapped)
        self._self_dispatcher = dispatcher

    def __enter__(self):
        entered = self.__wrapped__.__enter__()
        if entered is self.__wrapped__:
            return self
        return entered

    def __exit__(self, *args, **kwargs):
        return self.__wrapped__.__exit__(*args, **kwargs)


def _proxy_method(name: str, declared: Callable[..., Any]):
    if inspect.iscoroutinefunction(declared):

        @functools.wraps(declared, updated=())
        async def forward_async(self, *args, **kwargs):
            return await self._self_dispatcher.invoke_async(name, args, kwargs)

        return forward_async

    @functools.wraps(declared, updated=())
    def forward(self, *args, **kwargs):
        return self._self_dispatcher.invoke(name, args, kwargs)

    return forward


_PROXY_CLASSES: weakref.WeakKeyDictionary[type, type[InvocationProxy]] = (
    weakref.WeakKeyDictionary()
)
_PROXY_CLASSES_LOCK = threading.Lock()


def get_invocation_proxy_class(interface: type) -> type[InvocationProxy]:
    """Returns the proxy class intercepting the methods of ``interface``

    Proxy classes are cached per interface for as long as the interface
    itself is alive.
    """
    check_interface(interface)
    with _PROXY_CLASSES_LOCK:
        proxy_class = _PROXY_CLASSES.get(interface)
        if proxy_class is None:
            namespace = {
                name: _proxy_method(name, declared)
                for name, declared in interface_methods(interface).items()
            }
            namespace["__module__"] = __name__
            proxy_class = type(
                f"{interface.__name__}InvocationProxy",
                (InvocationProxy,),
                namespace,
            )
            _PROXY_CLASSES[interface] = proxy_class
        return proxy_class


__all__ = [
    "TRACE",
    "InvocationMetricRegistry",
    "InvocationProxy",
    "NotAnInterfaceError",
    "__version__",
    "get_default_registry",
    "get_invocation_proxy_class",
    "get_metric_name",
    "interface_methods",
    "is_interface",
    "set_default_registry",
    "unwrap",
    "wrap",
]

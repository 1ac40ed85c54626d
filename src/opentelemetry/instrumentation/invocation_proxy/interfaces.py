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
Helpers deciding what counts as a capability interface and which of its
methods an invocation proxy intercepts.

An interface is either a :class:`typing.Protocol` class or an abstract class,
i.e. a class deriving from :class:`abc.ABC` (or using
:class:`abc.ABCMeta`) that still declares abstract methods. Concrete classes
describe an implementation rather than a contract and are rejected.
"""

from __future__ import annotations

import abc
import inspect
import typing
from typing import Any, Callable

_CONTRACT_BASES = (object, typing.Protocol, typing.Generic, abc.ABC)


class NotAnInterfaceError(TypeError):
    """Raised when the type handed to ``wrap`` is not an interface."""


def is_interface(interface: Any) -> bool:
    if not inspect.isclass(interface):
        return False
    if getattr(interface, "_is_protocol", False):
        return True
    return inspect.isabstract(interface)


def check_interface(interface: Any) -> None:
    if not is_interface(interface):
        name = getattr(interface, "__qualname__", None) or repr(interface)
        raise NotAnInterfaceError(f"Class {name} is not an interface")


def interface_methods(interface: type) -> dict[str, Callable[..., Any]]:
    """Returns the public methods declared by ``interface`` and its bases.

    The most derived declaration of a name wins. Static methods, class
    methods and properties are left out since they do not operate on the
    wrapped instance.
    """
    methods: dict[str, Callable[..., Any]] = {}
    seen: set[str] = set()
    for klass in interface.__mro__:
        if klass in _CONTRACT_BASES:
            continue
        for name, value in vars(klass).items():
            if name.startswith("_") or name in seen:
                continue
            seen.add(name)
            if inspect.isfunction(value):
                methods[name] = value
    return methods

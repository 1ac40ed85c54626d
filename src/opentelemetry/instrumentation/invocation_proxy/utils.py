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

from __future__ import annotations

import logging
import os
from typing import Any

# pylint: disable=no-name-in-module
from opentelemetry.instrumentation.invocation_proxy.environment_variables import (
    OTEL_PYTHON_INVOCATION_PROXY_INSTRUMENT,
    OTEL_PYTHON_INVOCATION_PROXY_SYSTEM_NAME,
)

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

_DEFAULT_SYSTEM_NAME = "DB-API"


def get_instrument_enabled() -> bool:
    """
    Function to get the instrument flag from the environment variable
    default value is False
    """
    return (
        os.getenv(OTEL_PYTHON_INVOCATION_PROXY_INSTRUMENT, "False").lower()
        == "true"
    )


def get_system_name() -> str:
    """
    Function to get the system name used in trace log banners
    """
    system_name = os.getenv(OTEL_PYTHON_INVOCATION_PROXY_SYSTEM_NAME, "")
    return system_name.strip() or _DEFAULT_SYSTEM_NAME


def qualified_class_name(cls: type) -> str:
    module = getattr(cls, "__module__", None)
    qualname = getattr(cls, "__qualname__", cls.__name__)
    if module in (None, "builtins"):
        return qualname
    return f"{module}.{qualname}"


def safe_str(value: Any) -> str:
    try:
        return str(value)
    except Exception:  # pylint: disable=broad-except
        return f"<unprintable {type(value).__name__} object>"


def safe_repr(value: Any) -> str:
    try:
        return repr(value)
    except Exception:  # pylint: disable=broad-except
        return f"<unprintable {type(value).__name__} object>"


def format_arguments(args: tuple[Any, ...], kwargs: dict[str, Any]) -> str:
    """Renders call arguments the way they would be written at the call site"""
    parts = [safe_repr(arg) for arg in args]
    parts.extend(f"{key}={safe_repr(value)}" for key, value in kwargs.items())
    return "(" + ", ".join(parts) + ")"


def describe_exception(exc: BaseException) -> str:
    message = safe_str(exc)
    return message if message else type(exc).__name__


__all__ = [
    "TRACE",
    "describe_exception",
    "format_arguments",
    "get_instrument_enabled",
    "get_system_name",
    "qualified_class_name",
    "safe_repr",
    "safe_str",
]

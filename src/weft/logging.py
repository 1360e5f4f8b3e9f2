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

"""Structured logging for the scheduler and its primitives.

Every record emitted through :class:`StructuredLogger` carries two extra
attributes: ``event``, a dotted name such as ``task.unhandled_failure``,
and ``context``, a mapping of details. Records logged while a task is
running also name that task under ``context["current_task"]``.

The library never installs handlers on import. Applications that want
output call :func:`configure_logging`, or set ``WEFT_LOG_LEVEL`` and
``WEFT_LOG_FORMAT`` (``text`` or ``json``) and call it without arguments.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping, MutableMapping
from datetime import UTC, datetime
from typing import Any, cast, override

from ._context import current_task

__all__ = [
    "StructuredLogger",
    "configure_logging",
    "get_logger",
]

_LOG_LEVEL_ENV = "WEFT_LOG_LEVEL"
_LOG_FORMAT_ENV = "WEFT_LOG_FORMAT"
_HANDLER_NAME = "weft"


class StructuredLogger(logging.LoggerAdapter[logging.Logger]):
    """Adapter that requires an ``event`` name on every record.

    Context bound with :meth:`bind` or passed at construction is merged
    with the per-call ``context`` mapping and any ``extra`` keys::

        logger = get_logger(__name__, context={"component": "queue"})
        logger.debug("Queue closed.", event="queue.closed", context={"size": 3})
    """

    def __init__(
        self,
        logger: logging.Logger,
        *,
        context: Mapping[str, object] | None = None,
    ) -> None:
        super().__init__(logger, dict(context or {}))

    @property
    def context(self) -> Mapping[str, object]:
        return cast(Mapping[str, object], self.extra)

    def bind(self, **context: object) -> StructuredLogger:
        """Return a copy of this adapter with additional baseline context."""

        return type(self)(self.logger, context={**self.context, **context})

    @override
    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        event = kwargs.pop("event", None)
        inline = kwargs.pop("context", None)
        extra = cast(MutableMapping[str, object], kwargs.get("extra") or {})

        if event is None:
            event = extra.pop("event", None)
        if not isinstance(event, str):
            msg_ = "Structured logs require an 'event' name."
            raise TypeError(msg_)
        if inline is not None and not isinstance(inline, Mapping):
            msg_ = "context must be a mapping when provided."
            raise TypeError(msg_)

        payload: dict[str, object] = dict(self.context)
        if inline is not None:
            payload.update(cast(Mapping[str, object], inline))
        payload.update((key, value) for key, value in extra.items() if key != "event")

        task = current_task()
        if task is not None:
            _ = payload.setdefault("current_task", task.description)

        kwargs["extra"] = {"event": event, "context": payload}
        return msg, kwargs


def get_logger(
    name: str,
    *,
    context: Mapping[str, object] | None = None,
) -> StructuredLogger:
    """Return a :class:`StructuredLogger` for ``name``."""

    return StructuredLogger(logging.getLogger(name), context=context)


def configure_logging(
    *,
    level: int | str | None = None,
    json_mode: bool | None = None,
    env: Mapping[str, str] | None = None,
    force: bool = False,
) -> None:
    """Send log records to stderr.

    Arguments take precedence over ``WEFT_LOG_LEVEL`` and ``WEFT_LOG_FORMAT``.
    When the root logger already has handlers, only its level is changed,
    unless ``force`` is set.
    """

    env = os.environ if env is None else env
    resolved_level = _coerce_level(level if level is not None else env.get(_LOG_LEVEL_ENV))
    if json_mode is None:
        json_mode = env.get(_LOG_FORMAT_ENV, "text").strip().lower() == "json"

    root = logging.getLogger()
    root.setLevel(resolved_level)

    ours = [handler for handler in root.handlers if handler.get_name() == _HANDLER_NAME]
    if root.handlers and not force and not ours:
        return

    for handler in list(root.handlers):
        if force or handler in ours:
            root.removeHandler(handler)
            handler.close()

    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(_JsonFormatter() if json_mode else _TextFormatter())
    root.addHandler(handler)


class _TextFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    @override
    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        event = getattr(record, "event", None)
        if event is not None:
            line = f"{line} event={event}"
        context = getattr(record, "context", None)
        if context:
            details = " ".join(f"{key}={value!r}" for key, value in context.items())
            line = f"{line} {details}"
        return line


class _JsonFormatter(logging.Formatter):
    """Render each record as one compact JSON object."""

    @override
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if (event := getattr(record, "event", None)) is not None:
            payload["event"] = event
        if context := getattr(record, "context", None):
            payload["context"] = context
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=repr, separators=(",", ":"))


def _coerce_level(level: int | str | None) -> int:
    if level is None:
        return logging.INFO
    if isinstance(level, int):
        return level
    resolved = logging.getLevelNamesMapping().get(level.strip().upper())
    if resolved is None:
        msg = f"Unknown log level: {level!r}"
        raise ValueError(msg)
    return resolved

import atexit
import datetime as dt
import json
import logging
import logging.config
import os
import pathlib
from logging.handlers import RotatingFileHandler
from typing import Any, override

USER_CONFIG_FILE = "logging_config.json"
DEFAULT_CONFIG_FILE = pathlib.Path(__file__).parent.resolve() / "config.json"


def _config_path() -> pathlib.Path:
    """
    A `logging_config.json` in the current working directory replaces the
    packaged configuration
    """
    user_config = pathlib.Path(USER_CONFIG_FILE)
    return user_config if user_config.is_file() else DEFAULT_CONFIG_FILE


def setup_logging() -> None:
    """
    Loads the logging configuration with dictConfig and starts the queue
    listener when the configuration defines a `queue_handler`

    The packaged configuration sends warnings to stderr and the complete
    debug stream of the `vqa_weave` logger, including per-iteration costs,
    to `logs/vqa_weave.log.jsonl`.
    """
    with open(_config_path()) as f_in:
        logging.config.dictConfig(json.load(f_in))

    queue_handler = logging.getHandlerByName("queue_handler")
    if queue_handler is not None:
        queue_handler.listener.start()
        atexit.register(queue_handler.listener.stop)


# Attributes every LogRecord carries, anything else arrived through `extra=`
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime", "taskName"}


class VQAWeaveJSONFormatter(logging.Formatter):
    """
    Writes one JSON object per record

    Parameters
    ----------
    fmt_keys: dict[str, str] | None
        Output key to record attribute, e.g. ``{"level": "levelname"}``

    The rendered message and a UTC timestamp are always present, exception
    and stack text when the record has them. Values passed with ``extra=``,
    such as the optimizer's ``iteration`` and ``cost``, are copied under
    their own names. Other record attributes appear only through `fmt_keys`.
    """

    def __init__(
        self,
        *,
        fmt_keys: dict[str, str] | None = None,
    ) -> None:
        super().__init__()
        self.fmt_keys = dict(fmt_keys or {})

    @override
    def format(self, record: logging.LogRecord) -> str:
        return json.dumps(self._record_to_dict(record), default=str)

    def _fixed_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        created = dt.datetime.fromtimestamp(record.created, tz=dt.timezone.utc)
        fields: dict[str, Any] = {
            "message": record.getMessage(),
            "timestamp": created.isoformat(),
        }
        if record.exc_info is not None:
            fields["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info is not None:
            fields["stack_info"] = self.formatStack(record.stack_info)
        return fields

    def _record_to_dict(self, record: logging.LogRecord) -> dict[str, Any]:
        fixed = self._fixed_fields(record)
        payload: dict[str, Any] = {}
        for key, attr in self.fmt_keys.items():
            payload[key] = fixed.pop(attr) if attr in fixed else getattr(record, attr)
        payload.update(fixed)
        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS:
                payload.setdefault(key, value)
        return payload


class RotatingFileHandlerWithDir(RotatingFileHandler):
    """
    Rotating file handler whose parent directory is created on demand
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        filename = kwargs.get("filename")
        if filename:
            os.makedirs(os.path.dirname(filename) or ".", exist_ok=True)
        super().__init__(*args, **kwargs)

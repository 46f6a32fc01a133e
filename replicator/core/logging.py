"""
Logging setup and operator-facing console output.

Module loggers go through the standard logging tree. Progress text meant for
the operator is printed with the colour helpers below.
"""

import logging
import logging.config
import os
import string
import sys

import yaml

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO", config_path: str = "") -> None:
    """
    Load a YAML dictConfig (with ${VAR} substitution) or fall back to basicConfig.
    """
    if not config_path or not os.path.exists(config_path):
        logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
        return

    with open(config_path, "r", encoding="utf-8") as f:
        template = string.Template(f.read())

    mapping = os.environ.copy()
    mapping.setdefault("LOG_LEVEL", level.upper())
    logging.config.dictConfig(yaml.safe_load(template.safe_substitute(mapping)))


# ANSI Escape Codes for Colors
class Color:
    BLUE = "\033[94m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    CYAN = "\033[96m"
    BOLD = "\033[1m"
    END = "\033[0m"


def _paint(text: str, *codes: str, stream=None) -> str:
    """Wrap `text` in colour codes unless NO_COLOR is set or `stream` is not a terminal."""
    stream = stream or sys.stdout
    if os.environ.get("NO_COLOR") or not stream.isatty():
        return text
    return f"{''.join(codes)}{text}{Color.END}"


def info(msg: str):
    print(_paint(f"ℹ {msg}", Color.CYAN))


def success(msg: str):
    print(_paint(f"✅ {msg}", Color.GREEN))


def warning(msg: str):
    print(_paint(f"⚠️ {msg}", Color.YELLOW))


def error(msg: str):
    print(_paint(f"❌ {msg}", Color.RED, stream=sys.stderr), file=sys.stderr)


def highlight(msg: str) -> str:
    return _paint(msg, Color.BOLD)


def step(msg: str):
    print(_paint(f"➜ {msg}", Color.BLUE, Color.BOLD))

"""
Escaping — one function per target syntax.

Generators never interpolate raw user text.  Every dynamic value goes
through the function matching the syntax it lands in.
"""

from __future__ import annotations

import html
import json
import re
import subprocess

_CONTROL_CHARS = {"\r", "\n", "\x00"}

# NAME="value" tokens are passed to msiexec as written
_MSI_PROPERTY_RE = re.compile(r'^[A-Z][A-Z0-9_]*=".*"$')


def json_string(value: str) -> str:
    """A JSON string literal, quotes included."""
    return json.dumps(value, ensure_ascii=False)


def python_literal(value: str) -> str:
    """A Python string literal that evaluates back to ``value``."""
    return repr(value)


def html_text(value: str) -> str:
    """Text safe for HTML element content and double-quoted attributes."""
    return html.escape(value, quote=True)


def script_json(value) -> str:
    """JSON for an inline ``<script>`` block; ``</`` cannot end the element."""
    return json.dumps(value, ensure_ascii=False).replace("</", "<\\/")


def pascal_string(value: str) -> str:
    """A Pascal Script string literal.

    Quotes are doubled.  Line breaks become ``#13#10`` character
    constants concatenated between quoted runs.
    """
    lines = value.replace("\r\n", "\n").split("\n")
    quoted = ["'" + line.replace("'", "''") + "'" for line in lines]
    return " + #13#10 + ".join(quoted)


def inno_constant_text(value: str) -> str:
    """Text for an Inno Setup field where ``{`` starts a constant."""
    return value.replace("{", "{{")


def inno_quoted(value: str) -> str:
    """A double-quoted Inno Setup parameter value."""
    return '"' + inno_constant_text(value).replace('"', '""') + '"'


def single_line(value: str, field: str = "value") -> str:
    """Reject values that would break out of a line-oriented syntax."""
    if any(ch in value for ch in _CONTROL_CHARS):
        raise ValueError(f"{field} must be a single line")
    return value


def powershell_string(value: str) -> str:
    """A single-quoted PowerShell literal (no expansion)."""
    return "'" + value.replace("'", "''") + "'"


def command_line(args: list[str]) -> str:
    """Join arguments the way the Windows C runtime splits them.

    Tokens built by ``msi_property`` are kept verbatim; msiexec parses
    its own PROPERTY="value" syntax and rejects C-runtime quoting.
    """
    return " ".join(
        arg if _MSI_PROPERTY_RE.match(arg) else subprocess.list2cmdline([arg]) for arg in args
    )


def msi_property(name: str, value: str) -> str:
    """A public property assignment for msiexec, e.g. ``CONFIGPATH="C:\\x.json"``."""
    single_line(value, name)
    escaped = value.replace('"', '""')
    return f'{name}="{escaped}"'


def batch_set_value(value: str) -> str:
    """Value for ``set "NAME=value"`` in a batch file."""
    single_line(value, "batch value")
    return value.replace("%", "%%").replace('"', "")

"""
Plain-text formatting primitives for terminal summaries.

Everything here returns plain text drawn with box characters. Color is a
separate post-processing step (colorize) applied only when the terminal
supports it.
"""

import os
import re
import sys
from typing import Any, Optional, Sequence, Tuple


def supports_color() -> bool:
    """Detect whether stdout should receive ANSI color.

    Respects NO_COLOR (https://no-color.org/) and FORCE_COLOR env vars.
    """
    if os.environ.get('NO_COLOR') is not None:
        return False
    if os.environ.get('FORCE_COLOR') is not None:
        return True
    if not hasattr(sys.stdout, 'isatty'):
        return False
    return sys.stdout.isatty()


_HEAVY_H = '═'
_LIGHT_H = '─'
_VL = '│'

_BEST = '★'


def title(text: str, width: int = 60) -> str:
    """Centered title between heavy rules: ``═══ Model A ═══``."""
    padding = max(width - len(text) - 2, 4)
    left = padding // 2
    return f"{_HEAVY_H * left} {text} {_HEAVY_H * (padding - left)}"


def heading(text: str) -> str:
    """Indented heading underlined with a light rule."""
    return f"  {text}\n  {_LIGHT_H * len(text)}"


def kv_block(items: Sequence[Tuple[str, str]], indent: int = 2) -> str:
    """Key/value pairs aligned with dot leaders.

    Example::

        Records ·········· 1200
        Instances ········ 300
    """
    if not items:
        return ""
    width = max(len(k) for k, _ in items)
    prefix = ' ' * indent
    return "\n".join(
        f"{prefix}{key} {'·' * (width - len(key) + 2)} {value}" for key, value in items
    )


def table(
    headers: Sequence[str],
    rows: Sequence[Sequence[Any]],
    aligns: Optional[Sequence[str]] = None,
) -> str:
    """Bordered table; ``aligns`` holds 'l' or 'r' per column (default 'l')."""
    if not headers:
        return ""
    n_cols = len(headers)
    aligns = list(aligns or ['l'] * n_cols)

    widths = [len(str(h)) for h in headers]
    for row in rows:
        for i, cell in enumerate(row[:n_cols]):
            widths[i] = max(widths[i], len(str(cell)))

    def _cell(value: Any, i: int) -> str:
        s = str(value)
        return ' ' + (s.rjust(widths[i]) if aligns[i] == 'r' else s.ljust(widths[i])) + ' '

    def _rule(left: str, mid: str, right: str) -> str:
        return left + mid.join(_LIGHT_H * (w + 2) for w in widths) + right

    lines = [_rule('┌', '┬', '┐')]
    lines.append(_VL + _VL.join(_cell(h, i) for i, h in enumerate(headers)) + _VL)
    lines.append(_rule('├', '┼', '┤'))
    for row in rows:
        padded = list(row) + [''] * (n_cols - len(row))
        lines.append(_VL + _VL.join(_cell(padded[i], i) for i in range(n_cols)) + _VL)
    lines.append(_rule('└', '┴', '┘'))
    return "\n".join(lines)


def badge(label: str, value: str, indent: int = 2) -> str:
    """Key result line: ``▸ Average MAPE: 12.40``."""
    return f"{' ' * indent}▸ {label}: {value}"


def note_block(lines_list: Sequence[str], indent: int = 2) -> str:
    """Dotted note lines."""
    prefix = ' ' * indent
    return "\n".join(f"{prefix}· {line}" for line in lines_list)


def separator(width: int = 60) -> str:
    return _LIGHT_H * width


def fmt_value(value: Optional[float], digits: int = 2) -> str:
    """Fixed-point number, or N/A for a missing value."""
    if value is None:
        return "N/A"
    return f"{value:.{digits}f}"


def fmt_signed_pct(value: Optional[float]) -> str:
    if value is None:
        return "N/A"
    return f"{value:+.1f}%"


def mark_best(text: str, is_best: bool) -> str:
    """Append the best-value marker to a cell."""
    return f"{text} {_BEST}" if is_best else text


# ── ANSI color post-processing ──────────────────────────────────────

_RESET = '\033[0m'
_BOLD = '\033[1m'
_DIM = '\033[2m'
_GREEN = '\033[32m'
_YELLOW = '\033[33m'
_CYAN = '\033[36m'


def colorize(text: str) -> str:
    """Apply ANSI colors to formatted text.

    Titles are bold cyan, rules and table borders dim, best-value markers
    and their cells green, badges yellow and N/A dim yellow.
    """
    return '\n'.join(_colorize_line(line) for line in text.split('\n'))


def _colorize_line(line: str) -> str:
    stripped = line.strip()
    if _HEAVY_H in line and not stripped.startswith(_VL):
        return f"{_BOLD}{_CYAN}{line}{_RESET}"
    if stripped and all(c == _LIGHT_H for c in stripped):
        return f"{_DIM}{line}{_RESET}"
    if stripped[:1] in ('┌', '├', '└'):
        return f"{_DIM}{line}{_RESET}"
    if _VL in line:
        return f"{_DIM}{_VL}{_RESET}".join(_colorize_cell(p) for p in line.split(_VL))
    if '▸' in line:
        return line.replace('▸', f"{_YELLOW}▸{_RESET}")
    if stripped.startswith('·'):
        return f"{_DIM}{line}{_RESET}"
    return line


def _colorize_cell(cell: str) -> str:
    stripped = cell.strip()
    if not stripped:
        return cell
    if stripped.endswith(_BEST):
        return cell.replace(stripped, f"{_GREEN}{stripped}{_RESET}")
    if stripped == 'N/A':
        return cell.replace(stripped, f"{_DIM}{_YELLOW}{stripped}{_RESET}")
    if re.match(r'^[+-]\d+\.?\d*%$', stripped):
        return cell.replace(stripped, f"{_BOLD}{stripped}{_RESET}")
    return cell

"""Strip ANSI escape sequences from command output."""

import re

# OSC sequences (terminal title, hyperlinks) end with BEL or ST.
_OSC = re.compile(r"\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)")
_CSI = re.compile(r"\x1b(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")


def strip_ansi(value: str = "") -> str:
    """
    Remove ANSI escape sequences from the given string.

    Parameters
    ----------
    value : str, optional
        Input string possibly containing ANSI escape codes.

    Returns
    -------
    str
        The cleaned string with ANSI codes removed.
    """
    return _CSI.sub("", _OSC.sub("", value))


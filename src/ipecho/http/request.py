"""
=============================================================================
REQUEST LINE & HEADER PARSING
=============================================================================

This is a RELAXED parser. It reads just enough of an HTTP request to log
it, and never rejects anything:

    GET / HTTP/1.1\\r\\n             ← request line, kept verbatim
    Host: example.com\\r\\n          ← ("host", " example.com")
    Accept\\r\\n                     ← ("accept", "")
    X-Forwarded: a:b:c\\r\\n         ← ("x-forwarded", " a:b:c")
    \\r\\n                           ← end of headers

Rules for one header line:
- split on the FIRST colon only, later colons stay in the value
- the name is lowercased, the value is kept exactly as sent
  (no whitespace trimming, no case folding)
- a line without a colon is all name, with an empty value

There are no failure cases: every string, including "", parses.

=============================================================================
"""

from typing import Dict, Iterable, Tuple


def parse_header(raw_line: str) -> Tuple[str, str]:
    """
    Parse one header line into a (name, value) pair.

        parse_header("Host:0.0.0.0:3000")  → ("host", "0.0.0.0:3000")
        parse_header("Accept")             → ("accept", "")
        parse_header("")                   → ("", "")
    """
    name, _, value = raw_line.partition(":")
    return name.lower(), value


def strip_line_ending(line: str) -> str:
    """Remove a trailing "\\n" or "\\r\\n" from a line read off the wire."""
    if line.endswith("\n"):
        line = line[:-1]
        if line.endswith("\r"):
            line = line[:-1]
    return line


def parse_headers(lines: Iterable[str]) -> Dict[str, str]:
    """
    Build a header set from header lines, stopping at the first blank line.

    Lines may still carry their terminators. Duplicate names keep the last
    value seen.
    """
    headers: Dict[str, str] = {}
    for line in lines:
        line = strip_line_ending(line)
        if not line:
            break
        name, value = parse_header(line)
        headers[name] = value
    return headers

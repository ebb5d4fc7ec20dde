"""
HTTP-shaped pieces of the server: the relaxed line parser and the fixed
response. Neither does any I/O.
"""

from .request import parse_header, parse_headers, strip_line_ending
from .response import build_response, STATUS_LINE

__all__ = [
    "parse_header",
    "parse_headers",
    "strip_line_ending",
    "build_response",
    "STATUS_LINE",
]

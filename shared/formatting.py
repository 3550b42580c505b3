"""rotolog record formatting.

Templates use single-letter placeholders introduced by ``%``:

    %T  time      (15:04:05 MST)
    %t  short time (15:04)
    %D  date      (2006/01/02)
    %d  short date (01/02/06)
    %L  level     (FNST, FINE, DEBG, TRAC, INFO, WARN, EROR, CRIT)
    %S  source
    %M  message
    %%  a literal percent sign

Unknown placeholders are dropped. A non-empty template always renders text
ending in a newline.
"""
from __future__ import annotations

from shared.record import LogRecord

DEFAULT_FORMAT = "[%D %T] [%L] (%S) %M"

XML_FORMAT = """\t<record level="%L">
\t\t<timestamp>%D %T</timestamp>
\t\t<source>%S</source>
\t\t<message>%M</message>
\t</record>"""
XML_HEADER = '<log created="%D %T">'
XML_TRAILER = "</log>"


def _render(code: str, record: LogRecord) -> str:
    created = record.created
    if code == "T":
        return f"{created:%H:%M:%S} {created.tzname() or ''}".rstrip()
    if code == "t":
        return f"{created:%H:%M}"
    if code == "D":
        return f"{created:%Y/%m/%d}"
    if code == "d":
        return f"{created:%m/%d/%y}"
    if code == "L":
        return record.level.short
    if code == "S":
        return record.source
    if code == "M":
        return record.message
    if code == "%":
        return "%"
    return ""


def format_log_record(template: str, record: LogRecord) -> str:
    """Render ``record`` through ``template``."""
    if not template:
        return ""
    out = []
    i = 0
    n = len(template)
    while i < n:
        ch = template[i]
        if ch == "%" and i + 1 < n:
            out.append(_render(template[i + 1], record))
            i += 2
            continue
        out.append(ch)
        i += 1
    text = "".join(out)
    if not text.endswith("\n"):
        text += "\n"
    return text


def sanitize_newlines(message: str) -> str:
    """Escape embedded newlines so one record cannot forge extra log lines."""
    return message.replace("\n", "\\n")

from __future__ import annotations


# Literal escape sequences CI systems leave behind when a multi-line secret
# is stored as a single physical line. Order matters: "\r\n" before "\n".
_ESCAPED_TERMINATORS = ("\\r\\n", "\\n")


def normalize_key(raw: str) -> str:
    """
    Canonicalize a raw secret into key file content.

    Steps:
      1) trim surrounding whitespace
      2) expand literal "\\r\\n" / "\\n" escapes into real newlines
      3) convert CRLF / lone CR line endings into LF
      4) trim again (an escaped trailing newline must not survive as a blank line)
      5) append exactly one trailing "\\n"

    Pure and idempotent: normalize_key(normalize_key(s)) == normalize_key(s).
    """
    text = raw.strip()
    for escaped in _ESCAPED_TERMINATORS:
        text = text.replace(escaped, "\n")
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return text.strip() + "\n"

from __future__ import annotations

import re
from typing import Optional

from .errors import invalid_format


# "-----BEGIN <LABEL >PRIVATE KEY-----" on its own line. LABEL is empty for
# PKCS#8 keys, otherwise e.g. OPENSSH / RSA / EC / DSA / ENCRYPTED.
_BEGIN_RE = re.compile(
    r"^-----BEGIN (?P<label>(?:[A-Z0-9]+ )*)PRIVATE KEY-----[ \t]*$",
    re.MULTILINE,
)


def _end_marker_re(label: str) -> "re.Pattern[str]":
    return re.compile(
        r"^-----END " + re.escape(label) + r"PRIVATE KEY-----[ \t]*$",
        re.MULTILINE,
    )


def detect_label(key: str) -> Optional[str]:
    """
    Return the envelope label of the first complete private key block, or None.

    The label is returned without its trailing space ("" for PKCS#8,
    "OPENSSH", "RSA", ...).
    """
    for begin in _BEGIN_RE.finditer(key):
        label = begin.group("label")
        if _end_marker_re(label).search(key, begin.end()):
            return label.strip()
    return None


def check(key: str) -> bool:
    """
    Cheap structural check: does the text carry a private key envelope?

    Only the markers are inspected, the payload is left to the key inspector.
    """
    return detect_label(key) is not None


def require_envelope(key: str) -> str:
    label = detect_label(key)
    if label is None:
        raise invalid_format(
            "Secret does not contain a '-----BEGIN ... PRIVATE KEY-----' block "
            "with a matching END marker"
        )
    return label

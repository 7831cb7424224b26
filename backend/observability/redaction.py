"""Log redaction for credentials and personal data.

Covers what this service handles: caller e-mails inside token claims, JWTs
and bearer headers, Google OAuth access tokens and service-account keys,
the query string of GCS signed URLs, and Mongo connection strings.
"""
import re
from typing import List, Tuple

_PATTERNS: List[Tuple[re.Pattern, str]] = [
    # Service-account private key blocks (multi-line)
    (re.compile(r"-----BEGIN [A-Z ]*PRIVATE KEY-----.*?-----END [A-Z ]*PRIVATE KEY-----", re.DOTALL),
     "[REDACTED_PRIVATE_KEY]"),
    (re.compile(r"[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+"), "[REDACTED_EMAIL]"),
    (re.compile(r"eyJ[A-Za-z0-9_-]+\.eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+"), "[REDACTED_JWT]"),
    (re.compile(r"Bearer\s+[A-Za-z0-9_\-\.]+", re.IGNORECASE), "[REDACTED_BEARER]"),
    # Google OAuth access tokens
    (re.compile(r"ya29\.[A-Za-z0-9_\-\.]+"), "[REDACTED_GOOGLE_TOKEN]"),
    # Signed URL credentials (GCS v4 and v2)
    (re.compile(r"(X-Goog-Signature|X-Goog-Credential|Signature|GoogleAccessId)=[A-Za-z0-9%_\-\.@]+"),
     r"\1=[REDACTED_SIGNATURE]"),
    (re.compile(r"mongodb(?:\+srv)?://[^\s\"']+"), "[REDACTED_MONGO_URI]"),
    (re.compile(r"(?:secret|password|private_key)[\s:=]+[\"']?[A-Za-z0-9_\-\.]{16,}[\"']?", re.IGNORECASE),
     "[REDACTED_SECRET]"),
]


def redact(text: str) -> str:
    for pattern, replacement in _PATTERNS:
        text = pattern.sub(replacement, text)
    return text

"""Project-wide constants (chunk size, event kinds, tag keys)."""

# Many relays cap events at 128 KiB, 100 KiB leaves room for the envelope.
CHUNK_SIZE_BYTES: int = 100 * 1024

# Event kinds (classification codes)
BLOB: int = 5391
HTML: int = 5392
CSS: int = 5393
JS: int = 5394

KINDS = {
    "blob": BLOB,
    "html": HTML,
    "css": CSS,
    "js": JS,
}

# Tag keys
TAG_ATTACHMENT = "e"
TAG_MIME = "m"
TAG_DESCRIPTION = "alt"
TAG_INDEX = "index"
TAG_HASH = "x"

DEFAULT_RELATION_ROLE = "root"
DEFAULT_MIME_TYPE = "application/octet-stream"

RELAY_TIMEOUT_SECONDS: float = 10.0

# Bytes reserved for id, pubkey, sig, tags and the ["EVENT", ...] frame.
EVENT_ENVELOPE_ALLOWANCE_BYTES: int = 4 * 1024

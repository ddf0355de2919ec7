"""Machine-readable error codes returned in API error envelopes."""

INTERNAL_ERROR = "INTERNAL_ERROR"
VALIDATION_ERROR = "VALIDATION_ERROR"

LOG_ENTRY_NOT_FOUND = "LOG_ENTRY_NOT_FOUND"
CARTE_NOT_FOUND = "CARTE_NOT_FOUND"
CORRUPT_ENTRY = "CORRUPT_ENTRY"
UNSUPPORTED_UNDO = "UNSUPPORTED_UNDO"
RECORD_GONE = "RECORD_GONE"
NO_MODIFIABLE_FIELDS = "NO_MODIFIABLE_FIELDS"
BATCH_EMPTY = "BATCH_EMPTY"
WRITE_CONFLICT = "WRITE_CONFLICT"
INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
ALREADY_UNDONE = "ALREADY_UNDONE"

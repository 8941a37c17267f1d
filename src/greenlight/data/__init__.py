"""Movie catalogue data layer: record stores, query filters, codecs and errors."""

DEFAULT_TIMEOUT_S = 3.0

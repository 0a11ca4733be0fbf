"""Per-user blocked and safe lists."""

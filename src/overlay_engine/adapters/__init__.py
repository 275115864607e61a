"""Host toolkit adapters."""

"""Reply generation and prompt assembly."""

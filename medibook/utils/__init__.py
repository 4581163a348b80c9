"""Pure helpers - time parsing, slot generation and the clinic clock."""

"""Host adapters that drive the editor from a concrete UI toolkit."""

"""Watch a published pickup-list PDF for a number; email when it appears."""

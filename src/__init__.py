"""DTR Format Intake.

Recognizes scanned Daily Time Records against a registry of per-company
layouts, extracts normalized attendance fields, and routes unrecognized
layouts to an operator review queue that turns approved samples into
new formats.
"""

"""MarkdownView resource types, admission defaulting and validation, reconciliation and manager options."""

__version__ = "0.1.0"
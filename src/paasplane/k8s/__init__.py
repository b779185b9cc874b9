"""Generic reconciliation machinery: store access, conditions, patching and awaiting."""

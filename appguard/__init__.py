"""Time-based application usage restrictions."""

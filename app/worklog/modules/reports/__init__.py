"""
Reports module.

Timesheet entries are fetched with the request filters applied in SQL, then
reduced in memory by the pure helpers in aggregation.py. Exports come as CSV
or a printable HTML table.
"""

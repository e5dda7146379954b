"""
Roles module.

Company-scoped roles built from the fixed permission catalog. Owner and
Employee are created at signup and can be edited but not renamed or deleted.
"""

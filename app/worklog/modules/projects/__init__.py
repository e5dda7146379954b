"""
Projects module: company projects with optional budget and billing fields.
"""

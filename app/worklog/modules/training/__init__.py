"""
Training log (self-service). Users only ever see and edit their own records.
"""

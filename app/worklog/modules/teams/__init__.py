"""
Teams module.

Scope:
- Team CRUD (manage_teams)
- Member/project assignment (manage_teams, or manage_assigned_teams for members of the team)
"""

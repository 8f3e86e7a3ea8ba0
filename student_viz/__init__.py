"""student_viz package initializer.

This package contains the data pipeline behind the student survey
dashboard.  Modules include data loading, caching, aggregation and
plotting helpers.  See individual module docstrings for details.
"""

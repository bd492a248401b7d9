"""
Core modules for Claw Diary.

This package contains pricing, redaction, daily and weekly summaries,
narrative rendering, and 30-day analytics.
"""

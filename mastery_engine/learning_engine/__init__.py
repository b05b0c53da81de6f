"""
Learning Engine Module.

Mastery tracking and adaptive assessment:
- BKT mastery updates per (user, course, KC)
- Weakest-first adaptive session scheduling
- Pass-chance aggregation over per-KC mastery
"""

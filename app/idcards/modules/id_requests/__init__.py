"""
ID card requests: submission, status annotation, derived status and
administrative moves between the active tables (Pending, PrintQueue, Accepted,
Rejected).
"""

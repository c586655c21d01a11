"""
Scheduling Domain

Availability calendar, conflict detection, appointment lifecycle,
cancellation policy and audit history for multi-unit service businesses.
"""

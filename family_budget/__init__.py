"""
Family Budget - Source Package

Backend for a family budget tracker. A Google Sheets spreadsheet is the
system of record; Firebase Cloud Messaging delivers push notifications.

DESIGN PRINCIPLES:
1. The spreadsheet stays human-editable (columns found by header name)
2. Every write is recorded in the Logs sheet
3. Goals move only for the current fiscal week/month
4. Notifications never block or fail a request
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Family Budget Team"

"""Report Courier: scheduled Power BI report delivery.

Decides which report subscriptions are due on each periodic trigger and
hands them to the export pipeline that renders and emails the reports.
"""

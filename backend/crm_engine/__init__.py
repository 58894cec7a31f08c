"""
CSV import/export and bulk mutation engine for CRM records.
"""

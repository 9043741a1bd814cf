"""
Parcel screening Django application.

This app screens shipment records against stop-word, keyword and
commodity-code prefix rules and pages through the screened records.
"""

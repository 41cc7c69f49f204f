"""
Admin Aggregation Service

Dashboard statistics, merchant/order aggregation and staff auth behind the
admin frontend.
"""

__version__ = "1.0.0"

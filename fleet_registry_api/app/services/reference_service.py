"""
Services for the entities devices point at.

Accounts and drivers only expose create, list, get and delete.
Deleting one of them does not touch the devices or registrations that
reference it; those references become dangling and resolve to an empty
snapshot.
"""

from .record_service import RecordService


class AccountService(RecordService):
    collection = "accounts"
    label = "Account"
    resource = "ACCOUNT"
    url = "/api/v1/accounts"
    required_fields = ("account_name", "level")
    search_fields = ("account_name",)


class DriverService(RecordService):
    collection = "drivers"
    label = "Driver"
    resource = "DRIVER"
    url = "/api/v1/drivers"
    unique_fields = ("license_no",)
    required_fields = ("name", "contact_no", "email", "license_no", "is_active")
    search_fields = ("name", "contact_no", "email", "license_no")


from enum import Enum

class LocationStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    denied = "denied"

class AppRole(str, Enum):
    admin = "admin"
    user = "user"

class PresenceEvent(str, Enum):
    insert = "INSERT"
    update = "UPDATE"
    delete = "DELETE"

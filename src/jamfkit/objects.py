"""Records of the server's objects"""
from .classic import ClassicResource
from .model import JSONObject
from .resources import CollectionResource, SingletonResource

__all__ = [
    "IdAndName",
    "Location",
    "IosDetails",
    "ExtensionAttributeValue",
    "Building",
    "Department",
    "Category",
    "Script",
    "MobileDevice",
    "InventoryPreloadRecord",
    "ComputerExtensionAttribute",
    "ClientCheckInSettings",
    "CountryCode",
    "AppStoreCountryCodes",
    "NetworkSegment",
    "Site",
]

_ID = {"kind": "j_id", "identifier": "primary", "read_only": True}
_NAME = {
    "kind": "string",
    "required": True,
    "identifier": True,
    "filter_key": True,
}
_FILTERABLE_TEXT = {"kind": "string", "nil_ok": True, "filter_key": True}


# embedded objects
####################


class IdAndName(JSONObject):
    SCHEMA = {
        "id": {"kind": "j_id", "nil_ok": True},
        "name": {"kind": "string", "nil_ok": True},
    }


class Location(JSONObject):
    """Who uses a device, and where"""

    SCHEMA = {
        "username": {"kind": "string", "nil_ok": True},
        "realName": {"kind": "string", "nil_ok": True},
        "emailAddress": {"kind": "string", "nil_ok": True},
        "position": {"kind": "string", "nil_ok": True},
        "phoneNumber": {"kind": "string", "nil_ok": True},
        "departmentId": {"kind": "j_id", "nil_ok": True},
        "buildingId": {"kind": "j_id", "nil_ok": True},
        "room": {"kind": "string", "nil_ok": True},
    }


class IosDetails(JSONObject):
    """Hardware and state details only iOS devices report"""

    MUTABLE = False
    SCHEMA = {
        "model": {"kind": "string"},
        "modelIdentifier": {"kind": "string"},
        "modelNumber": {"kind": "string"},
        "isSupervised": {"kind": "boolean"},
        "batteryLevel": {"kind": "integer", "minimum": 0, "maximum": 100},
        "lastBackupTimestamp": {"kind": "timestamp"},
        "capacityMb": {"kind": "integer"},
        "availableMb": {"kind": "integer"},
        "percentageUsed": {"kind": "integer"},
        "isShared": {"kind": "boolean"},
        "isDeviceLocatorServiceEnabled": {"kind": "boolean"},
        "isCloudBackupEnabled": {"kind": "boolean"},
        "lastCloudBackupTimestamp": {"kind": "timestamp"},
        "isLocationServicesEnabled": {"kind": "boolean"},
        "computer": {"kind": IdAndName},
    }


class ExtensionAttributeValue(JSONObject):
    SCHEMA = {
        "name": {"kind": "string", "required": True},
        "value": {"kind": "string", "nil_ok": True},
    }


# collections
###############


class Building(CollectionResource):
    LIST_PATH = "v1/buildings"
    VERBS = frozenset(["get", "post", "put", "patch", "delete"])

    SCHEMA = {
        "id": _ID,
        "name": _NAME,
        "streetAddress1": _FILTERABLE_TEXT,
        "streetAddress2": _FILTERABLE_TEXT,
        "city": _FILTERABLE_TEXT,
        "stateProvince": _FILTERABLE_TEXT,
        "zipPostalCode": _FILTERABLE_TEXT,
        "country": _FILTERABLE_TEXT,
    }


class Department(CollectionResource):
    LIST_PATH = "v1/departments"

    SCHEMA = {
        "id": _ID,
        "name": _NAME,
    }


class Category(CollectionResource):
    LIST_PATH = "v1/categories"

    SCHEMA = {
        "id": _ID,
        "name": _NAME,
        "priority": {
            "kind": "integer",
            "minimum": 1,
            "maximum": 20,
            "filter_key": True,
        },
    }


class Script(CollectionResource):
    """A shell script run by policies"""

    LIST_PATH = "v1/scripts"

    PRIORITIES = ("BEFORE", "AFTER", "AT_REBOOT")

    SCHEMA = {
        "id": _ID,
        "name": _NAME,
        "info": {"kind": "string"},
        "notes": {"kind": "string"},
        "priority": {"kind": "string", "enum": PRIORITIES, "filter_key": True},
        "categoryId": {"kind": "j_id", "nil_ok": True, "filter_key": True},
        "categoryName": {
            "kind": "string",
            "read_only": True,
            "filter_key": True,
        },
        "parameter4": {"kind": "string"},
        "parameter5": {"kind": "string"},
        "parameter6": {"kind": "string"},
        "parameter7": {"kind": "string"},
        "parameter8": {"kind": "string"},
        "parameter9": {"kind": "string"},
        "parameter10": {"kind": "string"},
        "parameter11": {"kind": "string"},
        "osRequirements": {"kind": "string"},
        "scriptContents": {"kind": "string", "aliases": ("code",)},
    }


class MobileDevice(CollectionResource):
    """A managed iPhone, iPad or Apple TV.

    The hardware details are reported by the device, and read-only.
    """

    LIST_PATH = "v2/mobile-devices"
    VERBS = frozenset(["get", "patch"])
    ALT_IDENTIFIERS = ("serialNumber", "udid", "wifiMacAddress")

    SCHEMA = {
        "id": _ID,
        "name": {"kind": "string", "identifier": True},
        "assetTag": {"kind": "string", "nil_ok": True},
        "serialNumber": {"kind": "string", "read_only": True},
        "udid": {"kind": "string", "read_only": True},
        "wifiMacAddress": {
            "kind": "string",
            "read_only": True,
            "validator": "mac_address",
        },
        "bluetoothMacAddress": {
            "kind": "string",
            "read_only": True,
            "validator": "mac_address",
        },
        "ipAddress": {
            "kind": "string",
            "read_only": True,
            "validator": "ip_address",
        },
        "osVersion": {"kind": "string", "read_only": True},
        "osBuild": {"kind": "string", "read_only": True},
        "isManaged": {
            "kind": "boolean",
            "read_only": True,
            "aliases": ("managed",),
        },
        "type": {"kind": "string", "read_only": True},
        "lastInventoryUpdateTimestamp": {
            "kind": "timestamp",
            "read_only": True,
        },
        "site": {"kind": IdAndName, "read_only": True},
        "location": {"kind": Location},
        "ios": {"kind": IosDetails, "read_only": True},
    }


class InventoryPreloadRecord(CollectionResource):
    """Inventory data applied to a device when it enrolls"""

    LIST_PATH = "v2/inventory-preload/records"
    ALT_IDENTIFIERS = ("serialNumber",)

    DEVICE_TYPES = ("Computer", "Mobile Device", "Unknown")

    SCHEMA = {
        "id": _ID,
        "serialNumber": {
            "kind": "string",
            "required": True,
            "filter_key": True,
        },
        "deviceType": {
            "kind": "string",
            "required": True,
            "enum": DEVICE_TYPES,
            "filter_key": True,
        },
        "username": _FILTERABLE_TEXT,
        "fullName": {"kind": "string", "nil_ok": True},
        "emailAddress": _FILTERABLE_TEXT,
        "phoneNumber": {"kind": "string", "nil_ok": True},
        "position": {"kind": "string", "nil_ok": True},
        "department": _FILTERABLE_TEXT,
        "building": _FILTERABLE_TEXT,
        "room": {"kind": "string", "nil_ok": True},
        "poNumber": {"kind": "string", "nil_ok": True},
        "poDate": {"kind": "timestamp", "nil_ok": True},
        "assetTag": _FILTERABLE_TEXT,
        "vendor": {"kind": "string", "nil_ok": True},
        "extensionAttributes": {
            "kind": ExtensionAttributeValue,
            "multi": True,
        },
    }


class ComputerExtensionAttribute(CollectionResource):
    """The definition of a custom inventory field of computers"""

    LIST_PATH = "v1/computer-extension-attributes"
    VERBS = frozenset(["get", "post", "put", "delete"])
    OBJECT_NAME_ATTR = "name"

    DATA_TYPES = ("STRING", "INTEGER", "DATE_TIME")
    INPUT_TYPES = (
        "SCRIPT",
        "TEXT",
        "POPUP",
        "DIRECTORY_SERVICE_ATTRIBUTE_MAPPING",
    )

    SCHEMA = {
        "id": _ID,
        "name": _NAME,
        "description": {"kind": "string", "nil_ok": True},
        "dataType": {"kind": "string", "enum": DATA_TYPES, "filter_key": True},
        "enabled": {"kind": "boolean", "filter_key": True},
        "inventoryDisplayType": {"kind": "string"},
        "inputType": {
            "kind": "string",
            "enum": INPUT_TYPES,
            "filter_key": True,
        },
        "scriptContents": {"kind": "string", "nil_ok": True},
        "popupMenuChoices": {
            "kind": "string",
            "multi": True,
            "unique_items": True,
        },
    }


# singletons
##############


class ClientCheckInSettings(SingletonResource):
    """How often, and how, managed computers check in"""

    RSRC_PATH = "v3/check-in"
    UPDATE_METHOD = "put"

    SCHEMA = {
        "checkInFrequency": {"kind": "integer", "enum": (5, 15, 30, 60)},
        "isCreateHooks": {"kind": "boolean"},
        "isHookLogEnabled": {"kind": "boolean"},
        "isHookHideRestore": {"kind": "boolean"},
        "isHookMcxEnabled": {"kind": "boolean"},
        "isBackgroundHooks": {"kind": "boolean"},
        "isHookDisplayStatus": {"kind": "boolean"},
        "isCreateStartupScript": {"kind": "boolean"},
        "isStartupLogEnabled": {"kind": "boolean"},
        "isStartupNetworkStateEnabled": {"kind": "boolean"},
        "isStartupSsh": {"kind": "boolean"},
        "isStartupMcx": {"kind": "boolean"},
        "isEnableLocalConfigurationProfiles": {"kind": "boolean"},
    }


class CountryCode(JSONObject):
    MUTABLE = False
    SCHEMA = {
        "code": {"kind": "string"},
        "name": {"kind": "string"},
    }


class AppStoreCountryCodes(SingletonResource):
    RSRC_PATH = "v1/app-store-country-codes"
    MUTABLE = False

    SCHEMA = {
        "countryCodes": {"kind": CountryCode, "multi": True, "read_only": True}
    }

    def name_for(self, code):
        """The country name of a code, or ``None``"""
        for country in self.countryCodes:
            if country.code == code:
                return country.name
        return None


# classic API
###############


class NetworkSegment(ClassicResource):
    """A range of IPv4 addresses, e.g. one office's network"""

    RSRC_BASE = "networksegments"
    RSRC_LIST_KEY = "network_segments"
    RSRC_OBJECT_KEY = "network_segment"

    SCHEMA = {
        "id": _ID,
        "name": {"kind": "string", "required": True, "identifier": True},
        "starting_address": {
            "kind": "string",
            "required": True,
            "validator": "ip_address",
        },
        "ending_address": {
            "kind": "string",
            "required": True,
            "validator": "ip_address",
        },
        "distribution_server": {"kind": "string", "nil_ok": True},
        "url": {"kind": "string", "nil_ok": True},
        "swu_server": {"kind": "string", "nil_ok": True},
        "building": {"kind": "string", "nil_ok": True},
        "department": {"kind": "string", "nil_ok": True},
        "override_buildings": {"kind": "boolean"},
        "override_departments": {"kind": "boolean"},
    }


class Site(ClassicResource):
    RSRC_BASE = "sites"
    RSRC_LIST_KEY = "sites"
    RSRC_OBJECT_KEY = "site"

    SCHEMA = {
        "id": _ID,
        "name": {"kind": "string", "required": True, "identifier": True},
    }

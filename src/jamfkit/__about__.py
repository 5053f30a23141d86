__version__ = "0.3.0"
__description__ = "A client for the Jamf Pro APIs, classic and resource"
__author__ = "jamfkit developers"

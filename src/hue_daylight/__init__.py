"""Daylight-following color temperature and brightness for Philips Hue lights."""

__version__ = "0.1.0"

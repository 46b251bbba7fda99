"""Well-known bus names, object paths, interfaces and members of the desktop portal."""

DESKTOP_BUS_NAME = "org.freedesktop.portal.Desktop"
DESKTOP_OBJECT_PATH = "/org/freedesktop/portal/desktop"

SCREENCAST_INTERFACE = "org.freedesktop.portal.ScreenCast"
REQUEST_INTERFACE = "org.freedesktop.portal.Request"
SESSION_INTERFACE = "org.freedesktop.portal.Session"

CREATE_SESSION_METHOD = "CreateSession"
CLOSE_METHOD = "Close"
RESPONSE_SIGNAL = "Response"

# Type signatures of the members above
VARDICT_SIGNATURE = "a{sv}"
RESPONSE_SIGNATURE = "ua{sv}"
OBJECT_PATH_SIGNATURE = "o"

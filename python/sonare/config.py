"""Runtime configuration for the Sonare backend.

Values come from module constants, each overridable through an environment
variable, plus the CLI flags parsed in ``sonare.server``.
"""

import os
from dataclasses import dataclass

# Ports
DEFAULT_PORT = 8080
HTTP_PORT = 80
HTTPS_PORT = 443

# Bind host for every listener (all interfaces)
HOST = os.environ.get("SONARE_HOST", "0.0.0.0")

# Static site root; preview tracks live in <WEB_DIR>/music
WEB_DIR = os.environ.get("SONARE_WEB_DIR", "web")
MUSIC_SUBDIR = "music"

# TLS material for serve-test and serve-prod
CERT_FILE = os.environ.get("SONARE_CERT_FILE", os.path.join("certs", "server.crt"))
KEY_FILE = os.environ.get("SONARE_KEY_FILE", os.path.join("certs", "server.key"))

DEFAULT_DB_PATH = "sonare.db"

# Timeouts (seconds)
SHUTDOWN_TIMEOUT = 5.0
HEALTH_PING_TIMEOUT = 2.0
GEOIP_TIMEOUT = 2.0

# Background analytics writers
ANALYTICS_WORKERS = 4


@dataclass(frozen=True)
class Settings:
    """Resolved settings handed to the app factory."""
    web_dir: str = WEB_DIR
    cert_file: str = CERT_FILE
    key_file: str = KEY_FILE
    host: str = HOST
    hsts: bool = True

    @property
    def music_dir(self) -> str:
        return os.path.join(self.web_dir, MUSIC_SUBDIR)

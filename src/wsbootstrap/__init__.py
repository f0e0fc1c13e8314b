"""
wsbootstrap: one-shot provisioning for a cloud development workstation.

Enables APIs, creates service accounts, buckets, an artifact registry,
networking, builds the workstation image, and brings up a managed
workstation cluster, config and instance. Every step is create-if-absent,
so the whole run is safe to repeat.
"""

__version__ = "0.1.0"

CONFIG_ENV = "WSBOOTSTRAP_CONFIG"
DEFAULT_CONFIG_FILE = "gcp"

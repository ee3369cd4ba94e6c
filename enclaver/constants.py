"""Paths, file names and port numbers shared across the tool."""

EIF_FILE_NAME = "application.eif"
MANIFEST_FILE_NAME = "enclaver.yaml"

ENCLAVE_CONFIG_DIR = "/etc/enclaver"
ENCLAVE_ODYN_PATH = "/sbin/odyn"

RELEASE_BUNDLE_DIR = "/enclave"

# Internal ports start above the 16-bit boundary, which is reserved for proxying TCP.
STATUS_PORT = 17000
APP_LOG_PORT = 17001
HTTP_EGRESS_VSOCK_PORT = 17002

# TCP port the egress proxy listens on inside the enclave when the manifest gives none.
HTTP_EGRESS_PROXY_PORT = 9000

# Hostname that refers to the host side from inside the enclave.
OUTSIDE_HOST = "host"
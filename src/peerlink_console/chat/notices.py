"""User-facing texts for system messages and diagnostics."""

SYSTEM_NOTICES = {
    "boot": "NET_RUNNER boot sequence initiated...",
    "register": "Generating cryptographic identity...",
    "ready": "Secure node established. Awaiting link coordinates.",
    "connected": "Uplink established. Channel secure.",
    "disconnected": "Carrier signal lost.",
    "offline": "System offline.",
}

# System messages appended to the conversation when the link goes away
LINK_LOST_MESSAGES = {
    "closed": "Remote peer terminated connection.",
    "channel_error": "Link dropped after a channel error.",
    "manual": "Link terminated locally.",
    "identity_change": "Link dropped for identity change.",
}

"""theNexus backend: access control, entitlements and introduction lifecycle."""

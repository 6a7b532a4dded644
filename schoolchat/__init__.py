"""School chat core: permissions, contacts, live delivery and message storage."""

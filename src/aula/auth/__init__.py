"""Authentication: password hashing and signed bearer tokens."""

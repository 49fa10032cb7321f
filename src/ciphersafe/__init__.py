# CipherSafe - Main Package
#
# Authenticated storage for a single client-encrypted vault per user.
# The server never sees plaintext: it stores and versions an opaque blob
# behind password login and signed bearer tokens.

__version__ = "2.0.0"
__author__ = "CipherSafe Team"
__description__ = "Authenticated single-vault storage server"

__all__ = ["__version__"]

"""
rotation_core: scheduled administrator credential rotation.

A clock gate decides when an epoch ends, a credential generator produces
one credential per epoch, and a resource binder plans how to carry that
credential onto the managed resource.
"""

__version__ = "0.1.0"

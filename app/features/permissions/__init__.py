"""
Permission feature module.

Implements the combined permission check: a system permission granted by the
user's role AND a capability flag on the user's membership of an account.
"""

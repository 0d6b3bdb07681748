"""sessions/ -- SessionStore protocol and its reference backends.

Layer rule: sessions/ imports stdlib, third-party drivers, core/,
auth/models.py and auth/errors.py. It knows nothing about users or the
engine -- a store maps a user id to one secret with an expiry and that is all.
"""

"""auth/ -- Authentication, session protocol and access classification for Rampart.

Layer rule: auth/ imports stdlib, third-party libraries, core/ and the
SessionStore protocol from sessions/base.py. It never imports a concrete
session backend -- those are wired in by main.build_engine().
"""

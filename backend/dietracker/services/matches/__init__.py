"""Match domain services: scoring, ratings and live sessions.

The engine, classifier and rating modules are pure and never touch the
database. `session` is the only module that reads or writes match rows and
broadcasts changes to connected clients.
"""

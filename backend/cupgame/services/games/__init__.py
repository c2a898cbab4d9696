"""Cup game domain services.

``state`` and ``rotation`` hold the pure turn/score rules, ``events`` and
``ledger`` the score event log, ``undo`` the undo countdown, and ``session``
ties them to the database and the realtime channel. HTTP routes and socket
handlers import from here and stay free of game rules.
"""

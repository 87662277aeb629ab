"""Browser-based web UI for deadlock-lab.

This package provides a Flask application that exposes the analysers
as JSON endpoints.  It is an **optional** extra — install with::

    pip install deadlock-lab[web]

The ``create_app`` factory in ``app.py`` loads the scenario store and
wires up the routes; ``main`` runs the development server.
"""

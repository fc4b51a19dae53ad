"""Test package for mailpop.

Unit suites live in ``tests/unit`` next to the in-memory POP3 doubles
(``fakes.py``); ``tests/e2e`` drives the command-line interface. Importing this
package has no side effects; path setup happens in ``tests/conftest.py``.
"""
